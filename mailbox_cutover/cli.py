"""
Command-line entry point for Mailbox Cutover.
"""

import click

from .commands import cutover_command, preview_addresses_command


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    envvar="LOG_LEVEL",
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    """Mailbox Cutover - tenant-to-tenant mailbox identity cutover."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level.upper()


cli.add_command(cutover_command)
cli.add_command(preview_addresses_command)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
