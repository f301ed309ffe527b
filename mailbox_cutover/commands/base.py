"""Base command infrastructure and shared utilities.

This module provides common utilities used across command modules:
- CommandContext for shared command execution context
- exit_with_error for fatal pre-flight and session errors
"""

import sys
from pathlib import Path
from typing import Optional

import click

from ..config_manager import CutoverConfig, create_config_from_env, setup_logging
from ..logging_config import configure_logging


class CommandContext:
    """Shared context for command execution."""

    def __init__(self, ctx: click.Context, log_level: str = "INFO"):
        self.click_ctx = ctx
        self.log_level = log_level

    def get_config(
        self,
        output_dir: Optional[Path] = None,
        max_workers: Optional[int] = None,
        audit_log: Optional[Path] = None,
    ) -> CutoverConfig:
        """Get configuration from environment and set up logging."""
        config = create_config_from_env(
            output_dir=output_dir,
            max_workers=max_workers,
            audit_log=audit_log,
            log_level=self.log_level,
        )
        setup_logging(config.logging)
        configure_logging()
        return config


def command_context(ctx: click.Context) -> CommandContext:
    """Create CommandContext from click context."""
    obj = ctx.obj or {}
    return CommandContext(ctx=ctx, log_level=obj.get("log_level", "INFO"))


def exit_with_error(message: str, code: int = 1) -> None:
    """Exit with error message."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)
