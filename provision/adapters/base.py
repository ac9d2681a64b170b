"""
Command runner base — the contract between services and the host.

Every external process the toolkit starts goes through a CommandRunner.
Services never call ``subprocess`` directly, so the packaging logic can
be exercised against a MockRunner instead of a real package manager.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty, stripped stdout lines."""
        return [line.strip() for line in self.stdout.splitlines() if line.strip()]


class CommandRunner(ABC):
    """Abstract base class for command runners.

    Runners execute an argv and report the result. They NEVER raise for
    a non-zero exit — the caller decides what a failure means.

    To create a new runner:
        1. Subclass CommandRunner
        2. Implement name, which, run
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The runner identifier (e.g., 'subprocess', 'mock')."""

    @abstractmethod
    def which(self, command: str) -> bool:
        """Check if a command is available on the search path.

        Should be fast and never raise.
        """

    @abstractmethod
    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command to completion and return its result.

        Blocks until the process exits. There is no timeout: package
        managers hold their own locks and decide when they are done.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
