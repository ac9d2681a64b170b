"""Adapters — bindings to the host's external commands.

Public re-exports for convenient access.
"""

from provision.adapters.base import CommandResult, CommandRunner
from provision.adapters.mock import MockRunner
from provision.adapters.shell.command import SubprocessRunner

__all__ = [
    "CommandResult",
    "CommandRunner",
    "MockRunner",
    "SubprocessRunner",
]
