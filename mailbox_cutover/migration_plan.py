"""
Migration Plan

Resolves the identity, target email and status fields for one users CSV row
in one pass. A pass targets either the source or the destination tenant and
either applies the cutover or reverts it.

Revert only swaps identity and email back. Destination aliases and the
destination password are never reapplied on revert.
"""

from typing import Union

from .exceptions import InvalidTargetError, MissingFieldError
from .models import MailboxType, ResolvedFields, TenantRole, UserRecord


def parse_target(value: Union[str, TenantRole]) -> TenantRole:
    """Parse a target role case-insensitively, raising InvalidTargetError."""
    if isinstance(value, TenantRole):
        return value
    for role in TenantRole:
        if role.value.lower() == str(value).strip().lower():
            return role
    raise InvalidTargetError(f"Invalid target: {value!r}", target=str(value))


def resolve(record: UserRecord, target: TenantRole, revert: bool = False) -> ResolvedFields:
    """
    Derive the effective fields for a record.

    Args:
        record: Parsed users CSV row
        target: Tenant the pass mutates
        revert: Swap identity and email back to their pre-cutover values

    Returns:
        ResolvedFields for the pass

    Raises:
        MissingFieldError: If the resolved identity or email is empty
    """
    if target == TenantRole.SOURCE:
        identity_field, email_field = "source_email", "post_migration_source_email"
        account_enabled = record.account_enabled_at_source
        hidden = record.source_hide_from_gal
    elif target == TenantRole.DESTINATION:
        identity_field, email_field = (
            "destination_staging_email",
            "post_migration_destination_email",
        )
        account_enabled = record.account_enabled_at_destination
        hidden = record.destination_hide_from_gal
    else:
        raise InvalidTargetError(f"Invalid target: {target!r}", target=str(target))

    if revert:
        identity_field, email_field = email_field, identity_field

    identity = (getattr(record, identity_field) or "").strip()
    email = (getattr(record, email_field) or "").strip()

    if not identity:
        raise MissingFieldError(
            f"Identity field '{identity_field}' is empty",
            field_name=identity_field,
            row=record.row_number,
        )
    if not email:
        raise MissingFieldError(
            f"Email field '{email_field}' is empty",
            field_name=email_field,
            row=record.row_number,
        )

    aliases: tuple = ()
    password = None
    if target == TenantRole.DESTINATION and not revert:
        aliases = tuple(record.destination_aliases)
        if record.mailbox_type == MailboxType.USER and record.destination_password:
            password = record.destination_password

    return ResolvedFields(
        identity=identity,
        email=email,
        target=target,
        revert=revert,
        account_enabled=account_enabled,
        hidden_from_address_lists=hidden,
        mailbox_type=record.mailbox_type,
        aliases=aliases,
        password=password,
    )
