"""Preview addresses command.

Reconciles the addresses recorded in a snapshot CSV against the users CSV
without connecting to any tenant, so the address changes of a pass can be
reviewed before running it.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

import click
from rich.console import Console
from rich.table import Table

from ..address_set import AddressSet
from ..csv_loader import read_users_csv
from ..exceptions import FatalSetupError, MissingFieldError
from ..migration_plan import parse_target, resolve
from ..reconciliation import reconcile
from ..services.audit_recorder import read_snapshot
from .base import command_context, exit_with_error

console = Console()


def preview_records(
    snapshots: Dict[str, List[str]],
    records: list,
    target: str,
    revert: bool,
    target_domain: str,
) -> List[Dict[str, Any]]:
    """Reconcile every record against its snapshot row."""
    role = parse_target(target)
    previews = []
    for record in records:
        entry: Dict[str, Any] = {"row_number": record.row_number}
        try:
            resolved = resolve(record, role, revert)
        except MissingFieldError as e:
            entry.update(identity=None, error=e.message)
            previews.append(entry)
            continue

        entry["identity"] = resolved.identity
        existing = snapshots.get(resolved.identity.lower())
        if existing is None:
            entry["error"] = "No snapshot row for this identity"
            previews.append(entry)
            continue

        addresses, diagnostics = reconcile(
            AddressSet.from_strings(existing),
            target_domain,
            resolved.email,
            resolved.aliases,
        )
        entry.update(
            before=existing,
            after=addresses.to_strings(),
            diagnostics=diagnostics.to_dict(),
            error=None,
        )
        previews.append(entry)
    return previews


@click.command("preview-addresses")
@click.option(
    "--snapshot-csv",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Address snapshot CSV written by a previous run",
)
@click.option(
    "--users-csv",
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Users CSV with one row per mailbox",
)
@click.option(
    "--target",
    required=True,
    type=click.Choice(["Source", "Destination"], case_sensitive=False),
    help="Tenant the pass would target",
)
@click.option("--revert", is_flag=True, help="Preview a revert pass")
@click.option(
    "--target-domain",
    required=True,
    help="Domain whose SMTP addresses would be removed",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def preview_addresses_command(
    ctx: click.Context,
    snapshot_csv: Path,
    users_csv: Path,
    target: str,
    revert: bool,
    target_domain: str,
    output_json: bool,
) -> None:
    """
    Show the proxy addresses a cutover pass would commit.

    Example:
        mailbox-cutover preview-addresses --snapshot-csv contoso.com-destination-proxy-addresses-20240101-120000.csv \\
            --users-csv users.csv --target Destination --target-domain contoso.com
    """
    try:
        command_context(ctx).get_config()
        records = read_users_csv(users_csv)
    except ValueError as e:
        exit_with_error(f"Invalid configuration: {e}")
        return
    except FatalSetupError as e:
        exit_with_error(str(e))
        return

    snapshots = {
        identity.lower(): addresses for identity, addresses in read_snapshot(snapshot_csv)
    }
    previews = preview_records(snapshots, records, target, revert, target_domain)

    if output_json:
        click.echo(json.dumps(previews, indent=2))
        return

    table = Table(title="Proxy Address Preview")
    table.add_column("Row", style="dim")
    table.add_column("Identity", style="cyan")
    table.add_column("Before")
    table.add_column("After", style="green")
    table.add_column("Notes")

    for preview in previews:
        if preview["error"]:
            table.add_row(
                str(preview["row_number"] or ""),
                preview["identity"] or "",
                "",
                "",
                f"[red]{preview['error']}[/red]",
            )
            continue
        diagnostics = preview["diagnostics"]
        notes = []
        if diagnostics["discarded"]:
            notes.append(f"removed {len(diagnostics['discarded'])}")
        if diagnostics["added_aliases"]:
            notes.append(f"added {len(diagnostics['added_aliases'])}")
        if diagnostics["skipped_duplicates"]:
            notes.append(f"duplicates {', '.join(diagnostics['skipped_duplicates'])}")
        table.add_row(
            str(preview["row_number"] or ""),
            preview["identity"],
            "\n".join(preview["before"]),
            "\n".join(preview["after"]),
            "; ".join(notes),
        )

    console.print(table)
