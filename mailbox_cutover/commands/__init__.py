"""CLI commands for Mailbox Cutover."""

from .base import CommandContext, command_context, exit_with_error
from .cutover import cutover_command
from .preview import preview_addresses_command

__all__ = [
    "CommandContext",
    "command_context",
    "cutover_command",
    "exit_with_error",
    "preview_addresses_command",
]
