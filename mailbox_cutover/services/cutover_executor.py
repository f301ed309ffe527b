"""
Cutover Executor.

Applies the cutover steps for one record, in a fixed order:

1. AccountEnabled         - sign-in enabled/blocked
2. AddressListVisibility  - hidden from address lists
3. IdentityRename         - user principal name and mail
4. AddressCommit          - proxy addresses, WindowsEmailAddress and sign-in
                            address in one mailbox update
5. PasswordReset          - destination user mailboxes only

The first failing step stops the record. Steps are never retried here; the
directory service owns its own retry policy. In a dry run nothing is written,
but every step still reports the value it would have written.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Union

import structlog

from ..address_set import AddressSet
from ..exceptions import CutoverError, DirectorySessionError
from ..models import (
    ErrorCategory,
    ErrorDetail,
    MigrationOutcome,
    RecordStatus,
    ResolvedFields,
    StepName,
    StepResult,
)
from .directory_service import (
    DirectoryService,
    MailboxUpdate,
    PasswordProfile,
    UserPropertiesUpdate,
)

logger = structlog.get_logger(__name__)

PlannedStep = Tuple[StepName, Any, Callable[[], Awaitable[None]]]
HALTED_MESSAGE = "Run halted after a directory session failure"


class CutoverExecutor:
    """Runs the cutover step sequence for single records."""

    def __init__(self, directory: DirectoryService) -> None:
        self.directory = directory

    def plan(
        self, resolved: ResolvedFields, addresses: AddressSet, user_id: str
    ) -> List[PlannedStep]:
        """Build the ordered (step, value, apply) list for a record."""
        email = resolved.email
        email_addresses = addresses.to_strings()

        steps: List[PlannedStep] = [
            (
                StepName.ACCOUNT_ENABLED,
                resolved.account_enabled,
                lambda: self.directory.update_user_properties(
                    user_id, UserPropertiesUpdate(account_enabled=resolved.account_enabled)
                ),
            ),
            (
                StepName.ADDRESS_LIST_VISIBILITY,
                resolved.hidden_from_address_lists,
                lambda: self.directory.update_mailbox(
                    user_id,
                    MailboxUpdate(hidden_from_address_lists=resolved.hidden_from_address_lists),
                ),
            ),
            (
                StepName.IDENTITY_RENAME,
                email,
                lambda: self.directory.update_user_properties(
                    user_id, UserPropertiesUpdate(user_principal_name=email, mail=email)
                ),
            ),
            (
                StepName.ADDRESS_COMMIT,
                {
                    "emailAddresses": email_addresses,
                    "windowsEmailAddress": email,
                    "signInAddress": email,
                },
                lambda: self.directory.update_mailbox(
                    user_id,
                    MailboxUpdate(
                        email_addresses=email_addresses,
                        windows_email_address=email,
                        sign_in_address=email,
                    ),
                ),
            ),
        ]

        password = resolved.password
        if password:
            steps.append(
                (
                    StepName.PASSWORD_RESET,
                    {"forceChangeAtNextSignIn": True},
                    lambda: self.directory.update_user_properties(
                        user_id,
                        UserPropertiesUpdate(
                            password_profile=PasswordProfile(
                                password=password, force_change_at_next_sign_in=True
                            )
                        ),
                    ),
                )
            )
        return steps

    async def execute(
        self,
        resolved: ResolvedFields,
        addresses: AddressSet,
        dry_run: bool = False,
        row_number: Optional[int] = None,
        halt: Optional[asyncio.Event] = None,
    ) -> MigrationOutcome:
        """
        Apply (or, in a dry run, simulate) the cutover steps for one record.

        Args:
            resolved: Effective fields from the migration plan
            addresses: Reconciled proxy addresses to commit
            dry_run: Report what would be written without writing
            row_number: Users CSV row, for reporting
            halt: Set by the run loop when another record lost the session;
                checked before every step

        Returns:
            MigrationOutcome with the steps that succeeded and the failed step

        Raises:
            DirectorySessionError: The tenant session is unusable (run-fatal).
                The interrupted outcome is attached as ``outcome``.
        """
        log = logger.bind(identity=resolved.identity, target=resolved.target.value, dry_run=dry_run)
        outcome = MigrationOutcome(
            identity=resolved.identity,
            final_addresses=addresses.copy(),
            dry_run=dry_run,
            row_number=row_number,
        )

        try:
            user = await self.directory.get_user(resolved.identity)
        except DirectorySessionError as e:
            e.outcome = self._fail(outcome, StepName.ACCOUNT_ENABLED, e)
            raise
        except Exception as e:
            log.error("user_lookup_failed", error=str(e))
            return self._fail(outcome, StepName.ACCOUNT_ENABLED, e)

        for step, value, apply in self.plan(resolved, addresses, user.id):
            if halt is not None and halt.is_set():
                log.warning("cutover_halted", step=step.value)
                return self._fail(outcome, step, HALTED_MESSAGE)
            if not dry_run:
                try:
                    await apply()
                except DirectorySessionError as e:
                    log.error("cutover_step_failed", step=step.value, error=str(e))
                    e.outcome = self._fail(outcome, step, e)
                    raise
                except Exception as e:
                    log.error("cutover_step_failed", step=step.value, error=str(e))
                    return self._fail(outcome, step, e)
            outcome.step_results.append(StepResult(step=step, value=value, dry_run=dry_run))
            log.info(
                "cutover_step_planned" if dry_run else "cutover_step_applied",
                step=step.value,
                value=value,
            )

        outcome.status = RecordStatus.SUCCEEDED
        return outcome

    @staticmethod
    def _fail(
        outcome: MigrationOutcome, step: StepName, error: Union[Exception, str]
    ) -> MigrationOutcome:
        outcome.status = RecordStatus.PARTIALLY_FAILED
        outcome.failed_step = step
        outcome.error = ErrorDetail(
            category=ErrorCategory.STEP_EXECUTION_FAILURE,
            message=str(error),
            error_code=error.error_code if isinstance(error, CutoverError) else None,
        )
        return outcome
