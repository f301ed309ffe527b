"""Cutover command.

Runs one cutover pass over the users CSV against the source or destination
tenant:

- Pre-flight: both CSVs are loaded and the target validated before any
  tenant connection is opened
- Live runs ask for confirmation; dry runs read from the tenant but write
  nothing
- Ctrl-C stops the run between records; records in flight finish
- Per-record failures are reported in the summary and never change the exit
  code
"""

import asyncio
import logging
import signal
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from ..config_manager import CutoverConfig
from ..credential_provider import TenantCredentialProvider
from ..csv_loader import read_tenants_csv, read_users_csv
from ..exceptions import FatalSetupError
from ..migration_plan import parse_target
from ..models import RecordStatus, RunSummary, TenantRole, UserRecord
from ..services.audit_recorder import AuditRecorder, snapshot_filename
from ..services.cutover_service import CutoverService
from ..services.outcome_log import OutcomeLog
from ..services.tenant_session import open_tenant_session
from ..tenant_config import TenantConfig
from .base import command_context, exit_with_error

logger = logging.getLogger(__name__)

console = Console()

_STATUS_STYLES = {
    RecordStatus.SUCCEEDED: "green",
    RecordStatus.PARTIALLY_FAILED: "red",
    RecordStatus.SKIPPED: "yellow",
}


@click.command("cutover")
@click.option(
    "--users-csv",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Users CSV with one row per mailbox",
)
@click.option(
    "--tenants-csv",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Tenants CSV with source and destination tenant IDs and admin UPNs",
)
@click.option(
    "--target",
    required=True,
    type=click.Choice(["Source", "Destination"], case_sensitive=False),
    help="Tenant to apply the cutover to",
)
@click.option(
    "--revert",
    is_flag=True,
    help="Swap staging and final addresses to undo a previous pass",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Report what would be written without writing anything",
)
@click.option(
    "--target-domain",
    required=True,
    help="Domain whose SMTP addresses are removed from each mailbox",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the address snapshot CSV (default: CUTOVER_OUTPUT_DIR or .)",
)
@click.option(
    "--max-workers",
    type=click.IntRange(min=1),
    help="Records processed at once (default: CUTOVER_MAX_WORKERS or 1)",
)
@click.option(
    "--audit-log",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Outcome log file (default: CUTOVER_AUDIT_LOG or .cutover-audit.jsonl)",
)
@click.option(
    "--yes",
    is_flag=True,
    help="Skip the confirmation prompt for live runs",
)
@click.pass_context
def cutover_command(
    ctx: click.Context,
    users_csv: Path,
    tenants_csv: Path,
    target: str,
    revert: bool,
    dry_run: bool,
    target_domain: str,
    output_dir: Optional[Path],
    max_workers: Optional[int],
    audit_log: Optional[Path],
    yes: bool,
) -> None:
    """
    Cut mailbox identities over to their post-migration addresses.

    Example:
        mailbox-cutover cutover --users-csv users.csv --tenants-csv tenants.csv \\
            --target Destination --target-domain contoso.com --dry-run
    """
    cmd_ctx = command_context(ctx)
    try:
        config = cmd_ctx.get_config(
            output_dir=output_dir, max_workers=max_workers, audit_log=audit_log
        )
    except ValueError as e:
        exit_with_error(f"Invalid configuration: {e}")
        return

    try:
        role = parse_target(target)
        records = read_users_csv(users_csv)
        tenant_config = read_tenants_csv(tenants_csv)
    except FatalSetupError as e:
        exit_with_error(str(e))
        return

    if not records:
        click.echo("No user records found, nothing to do.")
        return

    mode = "DRY RUN" if dry_run else "LIVE"
    tenant_id = tenant_config.tenant_id_for(role)
    click.echo(
        f"\n{mode}: {len(records)} mailbox(es), target={role.value} ({tenant_id}), "
        f"revert={revert}, target domain={target_domain}"
    )
    if not dry_run and not yes:
        click.confirm("Apply changes to the tenant?", abort=True)

    try:
        summary = asyncio.run(
            _run_cutover(records, tenant_config, role, revert, dry_run, target_domain, config)
        )
    except FatalSetupError as e:
        exit_with_error(str(e))
        return

    render_summary(summary)
    if summary.aborted:
        click.echo(
            f"Cutover interrupted after {len(summary.outcomes)} of {len(records)} records"
        )
    click.echo(f"Cutover completed with {summary.failures} failures")


async def _run_cutover(
    records: List[UserRecord],
    tenant_config: TenantConfig,
    role: TenantRole,
    revert: bool,
    dry_run: bool,
    target_domain: str,
    config: CutoverConfig,
) -> RunSummary:
    provider = TenantCredentialProvider(tenant_config)
    recorder = AuditRecorder(config.output_dir / snapshot_filename(target_domain, role.value))
    outcome_log = OutcomeLog(config.audit_log)

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers on Windows or off the main thread
        logger.debug("SIGINT handler not installed, Ctrl-C will abort immediately")
        handler_installed = False

    try:
        async with open_tenant_session(
            provider,
            role,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
        ) as directory:
            service = CutoverService(
                directory,
                recorder,
                max_workers=config.max_workers,
                outcome_log=outcome_log,
            )
            return await service.run(
                records,
                role,
                revert=revert,
                dry_run=dry_run,
                target_domain=target_domain,
                cancel_event=cancel_event,
            )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def render_summary(summary: RunSummary) -> None:
    """Print the per-record outcome table and the totals."""
    title = "Cutover Results (dry run)" if summary.dry_run else "Cutover Results"
    table = Table(title=title)
    table.add_column("Row", style="dim")
    table.add_column("Identity", style="cyan")
    table.add_column("Status")
    table.add_column("Completed Steps")
    table.add_column("Failed Step")
    table.add_column("Error")

    for outcome in summary.outcomes:
        style = _STATUS_STYLES[outcome.status]
        table.add_row(
            str(outcome.row_number or ""),
            outcome.identity,
            f"[{style}]{outcome.status.value}[/{style}]",
            ", ".join(step.value for step in outcome.succeeded_steps),
            outcome.failed_step.value if outcome.failed_step else "",
            outcome.error.message if outcome.error else "",
        )

    console.print(table)
    console.print(
        f"Succeeded: {summary.succeeded}  "
        f"Partially failed: {summary.count(RecordStatus.PARTIALLY_FAILED)}  "
        f"Skipped: {summary.count(RecordStatus.SKIPPED)}"
    )
    if summary.snapshot_path and summary.snapshot_rows:
        console.print(f"Address snapshot: {summary.snapshot_path}")
