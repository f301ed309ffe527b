"""
Proxy Address Reconciliation

Computes the address set a mailbox should carry after cutover:

1. Drop SMTP addresses on the domain being vacated, and any existing copy of
   the new primary.
2. Merge the aliases supplied in the users CSV, skipping case-insensitive
   duplicates.
3. Drop any leftover alias form of the new primary.
4. Demote whatever primary is still present and append the new primary.

``reconcile`` is a pure function: it never touches the directory, so the same
call serves dry runs, previews and live runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .address_set import ALIAS_PREFIX, PRIMARY_PREFIX, AddressKind, AddressSet, ProxyAddress

logger = logging.getLogger(__name__)


@dataclass
class Diagnostics:
    """What reconciliation did to one mailbox's addresses."""

    discarded: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    collapsed_duplicates: List[str] = field(default_factory=list)
    added_aliases: List[str] = field(default_factory=list)
    skipped_duplicates: List[str] = field(default_factory=list)
    removed_primary_aliases: List[str] = field(default_factory=list)
    demoted_primaries: List[str] = field(default_factory=list)
    promoted_primary: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "discarded": self.discarded,
            "kept": self.kept,
            "collapsed_duplicates": self.collapsed_duplicates,
            "added_aliases": self.added_aliases,
            "skipped_duplicates": self.skipped_duplicates,
            "removed_primary_aliases": self.removed_primary_aliases,
            "demoted_primaries": self.demoted_primaries,
            "promoted_primary": self.promoted_primary,
        }


def is_valid_domain_filter(target_domain: Optional[str]) -> bool:
    """A usable domain filter is non-empty and has no '@' or whitespace."""
    if not target_domain or not target_domain.strip():
        return False
    domain = target_domain.strip()
    return "@" not in domain and not any(ch.isspace() for ch in domain)


def normalize_alias(alias: str) -> Optional[ProxyAddress]:
    """Trim a CSV alias and give it an ``smtp:`` prefix if it has none."""
    value = alias.strip()
    if not value:
        return None
    if not (value.startswith(PRIMARY_PREFIX) or value.startswith(ALIAS_PREFIX)):
        value = ALIAS_PREFIX + value
    return ProxyAddress(value)


def reconcile(
    existing: AddressSet,
    target_domain: Optional[str],
    new_primary: str,
    cli_aliases: Iterable[str] = (),
) -> Tuple[AddressSet, Diagnostics]:
    """
    Compute the final proxy address set for a mailbox.

    Args:
        existing: Addresses currently on the mailbox
        target_domain: Domain whose SMTP addresses are removed
        new_primary: Address (without prefix) that becomes the primary
        cli_aliases: Aliases from the users CSV, with or without prefix

    Returns:
        Tuple of (final address set, diagnostics)
    """
    diagnostics = Diagnostics()
    new_primary = new_primary.strip()
    new_primary_alias = ProxyAddress.alias(new_primary)

    domain_filter = None
    if is_valid_domain_filter(target_domain):
        domain_filter = target_domain.strip().lower()  # type: ignore[union-attr]
    elif target_domain:
        logger.warning(
            f"Ignoring malformed target domain '{target_domain}', keeping all addresses"
        )

    # Pass 1: partition existing addresses
    keep = AddressSet()
    for address in existing:
        if address.is_smtp:
            domain = (address.domain or "").lower()
            if (domain_filter and domain == domain_filter) or address == new_primary_alias:
                diagnostics.discarded.append(address.value)
                continue

        already = keep.find(address)
        if already is not None:
            diagnostics.collapsed_duplicates.append(address.value)
            if address.kind == AddressKind.PRIMARY and already.kind != AddressKind.PRIMARY:
                keep.replace(already, address)
            continue

        keep.append(address)
        diagnostics.kept.append(address.value)

    # Pass 2: merge CSV aliases
    for raw_alias in cli_aliases:
        alias = normalize_alias(raw_alias)
        if alias is None:
            continue
        if keep.contains(alias):
            diagnostics.skipped_duplicates.append(alias.value)
            continue
        keep.append(alias)
        diagnostics.added_aliases.append(alias.value)

    # Pass 3: the new primary must not linger as an alias
    for removed in keep.remove(new_primary_alias):
        diagnostics.removed_primary_aliases.append(removed.value)

    # Pass 4: exactly one primary
    for old_primary in keep.primaries:
        keep.replace(old_primary, old_primary.demoted())
        diagnostics.demoted_primaries.append(old_primary.value)

    promoted = ProxyAddress.primary(new_primary)
    keep.append(promoted)
    diagnostics.promoted_primary = promoted.value

    return keep, diagnostics
