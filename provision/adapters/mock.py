"""
Mock runner — universal test double for host commands.

Used by tests to simulate package managers without touching the host.
Responses are keyed by argv prefix; the longest matching prefix wins.
Unmatched commands succeed with empty output.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from provision.adapters.base import CommandResult, CommandRunner


class MockRunner(CommandRunner):
    """Universal mock runner for testing.

    By default, every command exits 0 with no output and only the
    commands passed in ``commands`` are reported as on PATH.
    """

    def __init__(
        self,
        commands: Iterable[str] = (),
        runner_name: str = "mock",
    ):
        self._name = runner_name
        self._commands: set[str] = set(commands)
        self._responses: dict[tuple[str, ...], tuple[CommandResult, str | None]] = {}
        self._call_log: list[tuple[str, ...]] = []
        self._env_log: list[dict[str, str]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[tuple[str, ...]]:
        """Every argv this mock has received, in order."""
        return self._call_log

    @property
    def env_log(self) -> list[dict[str, str]]:
        """Extra environment passed with each call, aligned with call_log."""
        return self._env_log

    @property
    def call_count(self) -> int:
        """Number of times run has been called."""
        return len(self._call_log)

    def add_command(self, command: str) -> None:
        """Put a command on the simulated PATH."""
        self._commands.add(command)

    def remove_command(self, command: str) -> None:
        """Take a command off the simulated PATH."""
        self._commands.discard(command)

    def set_response(
        self,
        argv_prefix: Sequence[str],
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        provides: str | None = None,
    ) -> None:
        """Set the result for every argv starting with ``argv_prefix``.

        Args:
            argv_prefix: Leading argv elements to match.
            returncode: Exit status to report.
            stdout: Captured standard output.
            stderr: Captured standard error.
            provides: Command that appears on PATH once this call succeeds
                (simulates installing the tool).
        """
        prefix = tuple(argv_prefix)
        result = CommandResult(argv=prefix, returncode=returncode, stdout=stdout, stderr=stderr)
        self._responses[prefix] = (result, provides)

    def set_failure(
        self,
        argv_prefix: Sequence[str],
        returncode: int = 1,
        stderr: str = "Mock failure",
    ) -> None:
        """Configure every argv starting with ``argv_prefix`` to fail."""
        self.set_response(argv_prefix, returncode=returncode, stderr=stderr)

    def calls_matching(self, argv_prefix: Sequence[str]) -> list[tuple[str, ...]]:
        """All recorded calls that start with ``argv_prefix``."""
        prefix = tuple(argv_prefix)
        return [argv for argv in self._call_log if argv[: len(prefix)] == prefix]

    def was_called(self, argv_prefix: Sequence[str]) -> bool:
        """Whether any recorded call starts with ``argv_prefix``."""
        return bool(self.calls_matching(argv_prefix))

    def which(self, command: str) -> bool:
        return command in self._commands

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv_t = tuple(argv)
        self._call_log.append(argv_t)
        self._env_log.append(dict(env or {}))

        best: tuple[CommandResult, str | None] | None = None
        best_len = -1
        for prefix, response in self._responses.items():
            if argv_t[: len(prefix)] == prefix and len(prefix) > best_len:
                best, best_len = response, len(prefix)

        if best is None:
            return CommandResult(argv=argv_t, returncode=0)

        template, provides = best
        if provides and template.ok:
            self._commands.add(provides)
        return CommandResult(
            argv=argv_t,
            returncode=template.returncode,
            stdout=template.stdout,
            stderr=template.stderr,
        )

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._env_log.clear()
        self._responses.clear()
