"""
Cutover Service.

Drives a run over the users CSV: for each record, resolve its fields, read
and snapshot its current proxy addresses, reconcile them and hand the result
to the executor. Per-record failures are recorded and the run moves on; only
session failures abort the run.

Records are processed in CSV order. With max_workers > 1 several records run
at once under a semaphore; outcomes are still reported in CSV order. A session
failure in one record halts the others before their next step, and no new
record starts.
"""

import asyncio
from datetime import datetime
from typing import Iterable, List, Optional

import structlog

from ..address_set import AddressSet
from ..exceptions import CutoverError, DirectorySessionError, MissingFieldError
from ..migration_plan import resolve
from ..models import (
    ErrorCategory,
    ErrorDetail,
    MigrationOutcome,
    RecordStatus,
    RunSummary,
    TenantRole,
    UserRecord,
)
from ..reconciliation import reconcile
from .audit_recorder import AuditRecorder
from .cutover_executor import CutoverExecutor
from .directory_service import DirectoryService
from .outcome_log import OutcomeLog

logger = structlog.get_logger(__name__)


def _record_label(record: UserRecord, target: TenantRole) -> str:
    if target == TenantRole.SOURCE:
        candidates = (record.source_email, record.post_migration_source_email)
    else:
        candidates = (
            record.destination_staging_email,
            record.post_migration_destination_email,
        )
    for candidate in candidates:
        if candidate:
            return candidate
    return f"row {record.row_number}" if record.row_number is not None else "<unknown>"


class CutoverService:
    """Runs the cutover pipeline for every record of a users CSV."""

    def __init__(
        self,
        directory: DirectoryService,
        recorder: AuditRecorder,
        max_workers: int = 1,
        outcome_log: Optional[OutcomeLog] = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.directory = directory
        self.recorder = recorder
        self.outcome_log = outcome_log
        self.executor = CutoverExecutor(directory)
        self.max_workers = max_workers

    async def process_record(
        self,
        record: UserRecord,
        target: TenantRole,
        revert: bool,
        dry_run: bool,
        target_domain: str,
        halt: Optional[asyncio.Event] = None,
    ) -> MigrationOutcome:
        """
        Run one record through resolve, snapshot, reconcile and execute.

        Raises:
            DirectorySessionError: The tenant session is unusable. The record's
                outcome, as far as it got, is attached as ``outcome``.
        """
        try:
            resolved = resolve(record, target, revert)
        except MissingFieldError as e:
            identity = _record_label(record, target)
            logger.warning("record_skipped", identity=identity, reason=e.message)
            return MigrationOutcome(
                identity=identity,
                status=RecordStatus.SKIPPED,
                error=ErrorDetail(ErrorCategory.RECORD_RESOLUTION, e.message, e.error_code),
                dry_run=dry_run,
                row_number=record.row_number,
            )

        log = logger.bind(identity=resolved.identity)

        try:
            mailbox = await self.directory.get_mailbox(resolved.identity)
        except Exception as e:
            # Never mutate a mailbox whose current addresses are unknown
            log.error("address_lookup_failed", error=str(e))
            self.recorder.snapshot_error(resolved.identity, e)
            outcome = MigrationOutcome(
                identity=resolved.identity,
                status=RecordStatus.SKIPPED,
                error=ErrorDetail(
                    ErrorCategory.ADDRESS_LOOKUP_FAILURE,
                    str(e),
                    e.error_code if isinstance(e, CutoverError) else None,
                ),
                dry_run=dry_run,
                row_number=record.row_number,
            )
            if isinstance(e, DirectorySessionError):
                e.outcome = outcome
                raise
            return outcome

        self.recorder.snapshot(resolved.identity, mailbox.proxy_addresses)

        addresses, diagnostics = reconcile(
            AddressSet.from_strings(mailbox.proxy_addresses),
            target_domain,
            resolved.email,
            resolved.aliases,
        )
        log.info("addresses_reconciled", **diagnostics.to_dict())

        return await self.executor.execute(
            resolved, addresses, dry_run=dry_run, row_number=record.row_number, halt=halt
        )

    async def run(
        self,
        records: Iterable[UserRecord],
        target: TenantRole,
        revert: bool = False,
        dry_run: bool = False,
        target_domain: str = "",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunSummary:
        """
        Process every record and return the run summary.

        The cancel event is checked before each record starts; records already
        running finish their current step sequence. The snapshot CSV is
        flushed, and outcomes appended to the outcome log, even when the run
        is aborted.

        Raises:
            DirectorySessionError: The tenant session failed mid-run
        """
        records = list(records)
        summary = RunSummary(
            target=target,
            revert=revert,
            dry_run=dry_run,
            target_domain=target_domain,
            snapshot_path=self.recorder.output_path,
            started_at=datetime.now(),
        )
        logger.info(
            "cutover_run_started",
            records=len(records),
            target=target.value,
            revert=revert,
            dry_run=dry_run,
            target_domain=target_domain,
            max_workers=self.max_workers,
        )

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        try:
            if self.max_workers == 1:
                for record in records:
                    if cancelled():
                        summary.aborted = True
                        break
                    try:
                        outcome = await self.process_record(
                            record, target, revert, dry_run, target_domain
                        )
                    except DirectorySessionError as e:
                        if e.outcome is not None:
                            summary.outcomes.append(e.outcome)
                        raise
                    summary.outcomes.append(outcome)
            else:
                semaphore = asyncio.Semaphore(self.max_workers)
                halt = asyncio.Event()
                session_errors: List[DirectorySessionError] = []

                async def guarded(record: UserRecord) -> Optional[MigrationOutcome]:
                    async with semaphore:
                        if cancelled() or halt.is_set():
                            return None
                        try:
                            return await self.process_record(
                                record, target, revert, dry_run, target_domain, halt=halt
                            )
                        except DirectorySessionError as e:
                            # Records still running stop before their next step
                            halt.set()
                            session_errors.append(e)
                            return e.outcome

                results: List[Optional[MigrationOutcome]] = await asyncio.gather(
                    *(guarded(record) for record in records)
                )
                summary.outcomes.extend(r for r in results if r is not None)
                summary.aborted = len(summary.outcomes) < len(records)
                if session_errors:
                    raise session_errors[0]
        except DirectorySessionError:
            summary.aborted = True
            raise
        finally:
            summary.snapshot_rows = self.recorder.flush()
            summary.completed_at = datetime.now()
            if self.outcome_log is not None:
                self.outcome_log.record_run(summary, self.directory.tenant_id)
            logger.info(
                "cutover_run_finished",
                processed=len(summary.outcomes),
                succeeded=summary.succeeded,
                failures=summary.failures,
                aborted=summary.aborted,
            )

        return summary
