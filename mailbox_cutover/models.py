"""Models for the Mailbox Cutover run.

Philosophy:
- Type-safe data structures using dataclasses
- Input records are read-only once loaded
- Explicit terminal state per record

Public API:
    TenantRole: Which tenant a pass targets
    MailboxType: User or shared mailbox
    StepName: The five cutover steps, in execution order
    RecordStatus: Terminal state of a record
    UserRecord: One row of the users CSV
    ResolvedFields: Effective identity/email/status fields for one pass
    StepResult: Value written (or that would be written) by one step
    ErrorDetail: Why a record did not complete
    MigrationOutcome: Per-record result
    RunSummary: Aggregate result of a run
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Tuple

from .address_set import AddressSet


class TenantRole(str, Enum):
    """Tenant targeted by a pass."""

    SOURCE = "Source"
    DESTINATION = "Destination"


class MailboxType(str, Enum):
    """Recipient type of the mailbox."""

    USER = "User"
    SHARED = "Shared"


class StepName(str, Enum):
    """Cutover steps, declared in execution order."""

    ACCOUNT_ENABLED = "AccountEnabled"
    ADDRESS_LIST_VISIBILITY = "AddressListVisibility"
    IDENTITY_RENAME = "IdentityRename"
    ADDRESS_COMMIT = "AddressCommit"
    PASSWORD_RESET = "PasswordReset"


class RecordStatus(str, Enum):
    """Terminal state of a record."""

    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"  # Stopped at failed_step
    SKIPPED = "skipped"  # No step attempted


class ErrorCategory(str, Enum):
    """Per-record error categories."""

    RECORD_RESOLUTION = "RecordResolution"
    ADDRESS_LOOKUP_FAILURE = "AddressLookupFailure"
    STEP_EXECUTION_FAILURE = "StepExecutionFailure"


@dataclass(frozen=True)
class UserRecord:
    """One row of the users CSV, with booleans already parsed."""

    source_email: str
    post_migration_source_email: str
    destination_staging_email: str
    post_migration_destination_email: str
    destination_aliases: Tuple[str, ...] = ()
    destination_password: str = ""
    account_enabled_at_source: bool = False
    account_enabled_at_destination: bool = True
    source_hide_from_gal: bool = True
    destination_hide_from_gal: bool = False
    mailbox_type: MailboxType = MailboxType.USER
    row_number: Optional[int] = None


@dataclass(frozen=True)
class ResolvedFields:
    """Effective fields for one record in one pass."""

    identity: str
    email: str
    target: TenantRole
    revert: bool
    account_enabled: bool
    hidden_from_address_lists: bool
    mailbox_type: MailboxType
    aliases: Tuple[str, ...] = ()
    password: Optional[str] = None

    @property
    def email_domain(self) -> str:
        return self.email.rsplit("@", 1)[-1] if "@" in self.email else ""


@dataclass
class StepResult:
    """Value written (or, in a dry run, that would be written) by a step."""

    step: StepName
    value: Any
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {"step": self.step.value, "value": self.value, "dry_run": self.dry_run}


@dataclass
class ErrorDetail:
    """Why a record stopped."""

    category: ErrorCategory
    message: str
    error_code: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "message": self.message,
            "error_code": self.error_code,
        }


@dataclass
class MigrationOutcome:
    """Result of processing a single record."""

    identity: str
    status: RecordStatus = RecordStatus.SUCCEEDED
    step_results: List[StepResult] = field(default_factory=list)
    failed_step: Optional[StepName] = None
    error: Optional[ErrorDetail] = None
    final_addresses: AddressSet = field(default_factory=AddressSet)
    dry_run: bool = False
    row_number: Optional[int] = None

    @property
    def succeeded_steps(self) -> List[StepName]:
        return [result.step for result in self.step_results]

    @property
    def success(self) -> bool:
        return self.status == RecordStatus.SUCCEEDED

    def to_dict(self) -> dict:
        """Convert to dictionary for the outcome log."""
        return {
            "identity": self.identity,
            "row_number": self.row_number,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "succeeded_steps": [step.value for step in self.succeeded_steps],
            "failed_step": self.failed_step.value if self.failed_step else None,
            "error": self.error.to_dict() if self.error else None,
            "final_addresses": self.final_addresses.to_strings(),
            "step_results": [result.to_dict() for result in self.step_results],
        }


@dataclass
class RunSummary:
    """Aggregate result of a cutover run."""

    target: TenantRole
    revert: bool
    dry_run: bool
    target_domain: str
    outcomes: List[MigrationOutcome] = field(default_factory=list)
    aborted: bool = False
    snapshot_path: Optional[Path] = None
    snapshot_rows: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def count(self, status: RecordStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def succeeded(self) -> int:
        return self.count(RecordStatus.SUCCEEDED)

    @property
    def failures(self) -> int:
        return len(self.outcomes) - self.succeeded

    def to_dict(self) -> dict:
        return {
            "target": self.target.value,
            "revert": self.revert,
            "dry_run": self.dry_run,
            "target_domain": self.target_domain,
            "processed": len(self.outcomes),
            "succeeded": self.succeeded,
            "partially_failed": self.count(RecordStatus.PARTIALLY_FAILED),
            "skipped": self.count(RecordStatus.SKIPPED),
            "aborted": self.aborted,
            "snapshot_path": str(self.snapshot_path) if self.snapshot_path else None,
            "snapshot_rows": self.snapshot_rows,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
