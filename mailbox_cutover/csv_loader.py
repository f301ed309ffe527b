"""
CSV ingestion for the users and tenants files.

Booleans are parsed exactly once, here, and an unrecognized value fails the
load instead of silently becoming False.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import InvalidInputError, MissingInputFileError
from .models import MailboxType, UserRecord
from .tenant_config import TenantConfig

logger = logging.getLogger(__name__)

USERS_COLUMNS = (
    "SourceEmail",
    "PostMigrationSourceEmail",
    "DestinationStagingEmail",
    "PostMigrationDestinationEmail",
    "DestinationAliases",
    "DestinationPassword",
    "AccountEnabledAtSource",
    "AccountEnabledAtDestination",
    "SourceHideFromGAL",
    "DestinationHideFromGAL",
    "MailboxType",
)

TENANTS_COLUMNS = (
    "SourceTenantId",
    "SourceAdminUPN",
    "DestinationTenantId",
    "DestinationAdminUPN",
)

_TRUE_VALUES = {"true", "yes", "y", "1", "$true"}
_FALSE_VALUES = {"false", "no", "n", "0", "$false"}


def parse_bool(value: Optional[str], column: Optional[str] = None, row: Optional[int] = None) -> bool:
    """
    Parse a CSV boolean.

    Raises:
        InvalidInputError: If the value is empty or not a recognized boolean
    """
    normalized = (value or "").strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise InvalidInputError(
        f"Unrecognized boolean value {value!r}", column=column, row=row
    )


def parse_mailbox_type(value: Optional[str], row: Optional[int] = None) -> MailboxType:
    # Exchange RecipientTypeDetails spellings are accepted too
    normalized = (value or "").strip().lower().replace("mailbox", "")
    for mailbox_type in MailboxType:
        if mailbox_type.value.lower() == normalized:
            return mailbox_type
    raise InvalidInputError(
        f"Unrecognized mailbox type {value!r}", column="MailboxType", row=row
    )


def split_aliases(value: Optional[str]) -> tuple:
    """Split the semicolon-separated DestinationAliases column."""
    return tuple(alias.strip() for alias in (value or "").split(";") if alias.strip())


def _open_rows(path: Path, required: tuple) -> List[Dict[str, str]]:
    if not path.is_file():
        raise MissingInputFileError(f"CSV file not found: {path}", path=str(path))

    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            header = [name.strip() for name in (reader.fieldnames or [])]
            missing = [column for column in required if column not in header]
            if missing:
                raise InvalidInputError(
                    f"CSV is missing columns: {', '.join(missing)}", path=str(path)
                )
            rows = []
            for index, row in enumerate(reader, start=2):
                # DictReader files surplus fields under the None key
                if None in row:
                    raise InvalidInputError(
                        f"Row has {len(row[None])} more field(s) than the header; "
                        "quote values that contain commas",
                        path=str(path),
                        row=index,
                    )
                rows.append({k.strip(): (v or "").strip() for k, v in row.items()})
            return rows
    except UnicodeDecodeError as e:
        raise InvalidInputError(
            f"CSV is not UTF-8 encoded: {e.reason}",
            path=str(path),
            cause=e,
            recovery_suggestion="Save the file as CSV UTF-8",
        ) from e
    except csv.Error as e:
        raise InvalidInputError(f"Malformed CSV: {e}", path=str(path), cause=e) from e


def read_users_csv(path: Path) -> List[UserRecord]:
    """
    Load the users CSV.

    Row numbers count the header as row 1, matching what a spreadsheet shows.

    Raises:
        MissingInputFileError: If the file does not exist
        InvalidInputError: If a column is missing or a value cannot be parsed
    """
    records = []
    for index, row in enumerate(_open_rows(path, USERS_COLUMNS), start=2):
        if not any(row.values()):
            continue
        records.append(
            UserRecord(
                source_email=row["SourceEmail"],
                post_migration_source_email=row["PostMigrationSourceEmail"],
                destination_staging_email=row["DestinationStagingEmail"],
                post_migration_destination_email=row["PostMigrationDestinationEmail"],
                destination_aliases=split_aliases(row["DestinationAliases"]),
                destination_password=row["DestinationPassword"],
                account_enabled_at_source=parse_bool(
                    row["AccountEnabledAtSource"], "AccountEnabledAtSource", index
                ),
                account_enabled_at_destination=parse_bool(
                    row["AccountEnabledAtDestination"], "AccountEnabledAtDestination", index
                ),
                source_hide_from_gal=parse_bool(
                    row["SourceHideFromGAL"], "SourceHideFromGAL", index
                ),
                destination_hide_from_gal=parse_bool(
                    row["DestinationHideFromGAL"], "DestinationHideFromGAL", index
                ),
                mailbox_type=parse_mailbox_type(row["MailboxType"], index),
                row_number=index,
            )
        )
    logger.info(f"Loaded {len(records)} user records from {path}")
    return records


def read_tenants_csv(path: Path) -> TenantConfig:
    """
    Load the tenants CSV; the first data row describes the run.

    Raises:
        MissingInputFileError: If the file does not exist
        InvalidInputError: If the file has no data row or a value is empty
    """
    rows = [row for row in _open_rows(path, TENANTS_COLUMNS) if any(row.values())]
    if not rows:
        raise InvalidInputError("Tenants CSV has no data rows", path=str(path))
    if len(rows) > 1:
        logger.warning(f"Tenants CSV has {len(rows)} rows, using the first")

    row = rows[0]
    return TenantConfig(
        source_tenant_id=row["SourceTenantId"],
        source_admin_upn=row["SourceAdminUPN"],
        destination_tenant_id=row["DestinationTenantId"],
        destination_admin_upn=row["DestinationAdminUPN"],
    )
