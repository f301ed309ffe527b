"""
Service Layer Module

Directory access, the per-record cutover executor, the run loop and the
audit artifacts (address snapshots and the outcome log) a run leaves behind.
"""

from .audit_recorder import AuditRecorder, read_snapshot, snapshot_filename
from .cutover_executor import CutoverExecutor
from .cutover_service import CutoverService
from .directory_service import (
    DirectoryService,
    DirectoryUser,
    MailboxInfo,
    MailboxUpdate,
    PasswordProfile,
    UserPropertiesUpdate,
)
from .outcome_log import OutcomeLog

__all__ = [
    "AuditRecorder",
    "CutoverExecutor",
    "CutoverService",
    "DirectoryService",
    "DirectoryUser",
    "MailboxInfo",
    "MailboxUpdate",
    "OutcomeLog",
    "PasswordProfile",
    "UserPropertiesUpdate",
    "read_snapshot",
    "snapshot_filename",
]
