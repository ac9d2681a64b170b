"""
Subprocess runner — the single place where host commands are executed.

All package manager invocations, service checks and queries land here.
Output is captured and logged at debug level; a missing binary is
reported as exit status 127, the same way a shell would.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence

from provision.adapters.base import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

# Exit status a POSIX shell reports for "command not found"
EXIT_NOT_FOUND = 127


def format_argv(argv: Sequence[str]) -> str:
    """Render an argv as a copy-pasteable shell string."""
    return " ".join(shlex.quote(a) for a in argv)


class SubprocessRunner(CommandRunner):
    """Execute commands with ``subprocess.run`` and capture output."""

    @property
    def name(self) -> str:
        return "subprocess"

    def which(self, command: str) -> bool:
        return shutil.which(command) is not None

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv_t = tuple(argv)
        logger.debug("CMD %s", format_argv(argv_t))

        full_env = os.environ.copy()
        if env:
            full_env.update(env)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv_t,
                capture_output=True,
                text=True,
                env=full_env,
            )
        except FileNotFoundError:
            logger.debug("Command not found: %s", argv_t[0])
            return CommandResult(
                argv=argv_t,
                returncode=EXIT_NOT_FOUND,
                stderr=f"{argv_t[0]}: command not found",
            )
        except OSError as e:
            logger.warning("Cannot execute %s: %s", argv_t[0], e)
            return CommandResult(argv=argv_t, returncode=EXIT_NOT_FOUND, stderr=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("exit=%d after %dms", proc.returncode, elapsed_ms)
        if proc.stdout:
            logger.debug("STDOUT %s", proc.stdout.strip())
        if proc.stderr:
            logger.debug("STDERR %s", proc.stderr.strip())

        return CommandResult(
            argv=argv_t,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )
