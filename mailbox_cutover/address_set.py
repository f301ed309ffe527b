"""Proxy address value types.

Philosophy:
- A proxy address is compared case-insensitively on its full value
- The kind comes from the case-sensitive scheme prefix
- Addresses with unknown schemes are carried through untouched

Public API:
    AddressKind: Primary, alias or other (X500, SIP, ...)
    ProxyAddress: A single proxy address
    AddressSet: Ordered collection of proxy addresses
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional

PRIMARY_PREFIX = "SMTP:"
ALIAS_PREFIX = "smtp:"


class AddressKind(str, Enum):
    """Kind of proxy address, derived from its prefix."""

    PRIMARY = "primary"
    ALIAS = "alias"
    OTHER = "other"


@dataclass(frozen=True, eq=False)
class ProxyAddress:
    """A single proxy address such as ``SMTP:jane@contoso.com``."""

    value: str

    @property
    def kind(self) -> AddressKind:
        if self.value.startswith(PRIMARY_PREFIX):
            return AddressKind.PRIMARY
        if self.value.startswith(ALIAS_PREFIX):
            return AddressKind.ALIAS
        return AddressKind.OTHER

    @property
    def is_smtp(self) -> bool:
        return self.kind in (AddressKind.PRIMARY, AddressKind.ALIAS)

    @property
    def address(self) -> str:
        """Address without the scheme prefix (SMTP addresses only)."""
        if self.is_smtp:
            return self.value[len(PRIMARY_PREFIX):]
        return self.value

    @property
    def domain(self) -> Optional[str]:
        """Domain portion of an SMTP address, or None if it has none."""
        if not self.is_smtp or "@" not in self.address:
            return None
        return self.address.rsplit("@", 1)[1]

    @property
    def key(self) -> str:
        return self.value.lower()

    @classmethod
    def primary(cls, address: str) -> "ProxyAddress":
        return cls(PRIMARY_PREFIX + address)

    @classmethod
    def alias(cls, address: str) -> "ProxyAddress":
        return cls(ALIAS_PREFIX + address)

    def demoted(self) -> "ProxyAddress":
        """Return the alias form of a primary address."""
        if self.kind != AddressKind.PRIMARY:
            return self
        return ProxyAddress.alias(self.address)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProxyAddress):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return self.value


class AddressSet:
    """
    Ordered set of proxy addresses for one mailbox.

    Entries keep their insertion order. The set itself does not reject
    duplicates or extra primaries, because addresses read from a live mailbox
    may already violate them; ``validate()`` reports whether the invariants
    (no case-insensitive duplicates, at most one primary) hold.
    """

    def __init__(self, addresses: Optional[Iterable[ProxyAddress]] = None) -> None:
        self._addresses: List[ProxyAddress] = list(addresses or [])

    @classmethod
    def from_strings(cls, values: Iterable[str]) -> "AddressSet":
        return cls(ProxyAddress(value) for value in values if value)

    def to_strings(self) -> List[str]:
        return [address.value for address in self._addresses]

    def joined(self, separator: str = ";") -> str:
        return separator.join(self.to_strings())

    @property
    def primaries(self) -> List[ProxyAddress]:
        return [a for a in self._addresses if a.kind == AddressKind.PRIMARY]

    @property
    def primary(self) -> Optional[ProxyAddress]:
        primaries = self.primaries
        return primaries[0] if primaries else None

    def contains(self, address: ProxyAddress) -> bool:
        return any(existing == address for existing in self._addresses)

    def find(self, address: ProxyAddress) -> Optional[ProxyAddress]:
        for existing in self._addresses:
            if existing == address:
                return existing
        return None

    def append(self, address: ProxyAddress) -> None:
        self._addresses.append(address)

    def remove(self, address: ProxyAddress) -> List[ProxyAddress]:
        """Remove every entry equal to ``address``; returns the removed entries."""
        removed = [a for a in self._addresses if a == address]
        self._addresses = [a for a in self._addresses if a != address]
        return removed

    def replace(self, old: ProxyAddress, new: ProxyAddress) -> None:
        self._addresses = [
            new if existing is old else existing for existing in self._addresses
        ]

    def duplicates(self) -> List[ProxyAddress]:
        seen = set()
        dupes = []
        for address in self._addresses:
            if address.key in seen:
                dupes.append(address)
            seen.add(address.key)
        return dupes

    def validate(self) -> None:
        """Raise ValueError if the set violates its invariants."""
        if len(self.primaries) > 1:
            raise ValueError(
                f"More than one primary address: {[a.value for a in self.primaries]}"
            )
        dupes = self.duplicates()
        if dupes:
            raise ValueError(f"Duplicate addresses: {[a.value for a in dupes]}")

    def same_addresses(self, other: "AddressSet") -> bool:
        """Order-insensitive comparison of addresses and their kinds."""
        return sorted((a.key, a.kind.value) for a in self) == sorted(
            (a.key, a.kind.value) for a in other
        )

    def copy(self) -> "AddressSet":
        return AddressSet(self._addresses)

    def __iter__(self) -> Iterator[ProxyAddress]:
        return iter(self._addresses)

    def __len__(self) -> int:
        return len(self._addresses)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            item = ProxyAddress(item)
        if not isinstance(item, ProxyAddress):
            return False
        return self.contains(item)

    def __eq__(self, other: object) -> bool:
        """Exact, order-sensitive and case-sensitive comparison."""
        if not isinstance(other, AddressSet):
            return NotImplemented
        return self.to_strings() == other.to_strings()

    def __repr__(self) -> str:
        return f"AddressSet({self.to_strings()!r})"
