"""
Backend bootstrap — preconditions for snap and flatpak.

Both universal managers need setup before any query or mutation:
the tool itself, its service, and (for flatpak) the flathub remote.
Every check is idempotent, so ``ensure`` runs on each use instead of
remembering that it already succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from provision.adapters.base import CommandRunner
from provision.core.models.backend import Backend
from provision.core.services.packaging.errors import BootstrapError, PackagingError
from provision.core.services.packaging.recipes import FLATHUB_REMOTE, FLATHUB_URL

logger = logging.getLogger(__name__)

SNAPD_PACKAGE = "snapd"
SNAPD_SOCKET = "snapd.socket"
FLATPAK_PACKAGE = "flatpak"

# Classic snaps expect /snap; Fedora and Arch keep it under /var/lib
SNAP_LINK = Path("/snap")
SNAP_TARGET = Path("/var/lib/snapd/snap")


class Bootstrapper:
    """Bring snap or flatpak into a usable state.

    Args:
        runner: Command runner for checks and setup commands.
        install_dependency: Callback that installs a package with the
            host's native backend (the orchestrator's own install).
        snap_link: Where the classic-snap symlink should live.
        snap_target: What the symlink points at.
    """

    def __init__(
        self,
        runner: CommandRunner,
        install_dependency: Callable[[str], object],
        snap_link: Path = SNAP_LINK,
        snap_target: Path = SNAP_TARGET,
    ):
        self._runner = runner
        self._install_dependency = install_dependency
        self._snap_link = snap_link
        self._snap_target = snap_target

    def ensure(self, backend: Backend) -> None:
        """Run the precondition for ``backend``; no-op for other backends.

        Raises:
            BootstrapError: If any part of the setup fails.
        """
        if backend is Backend.SNAP:
            self._ensure_snap()
        elif backend is Backend.FLATPAK:
            self._ensure_flatpak()

    # ── snap ────────────────────────────────────────────────────

    def _ensure_snap(self) -> None:
        if not self._runner.which("snap"):
            logger.warning("Snap not available, installing %s...", SNAPD_PACKAGE)
            self._install_tool(Backend.SNAP, SNAPD_PACKAGE)

        active = self._runner.run(["systemctl", "is-active", "--quiet", SNAPD_SOCKET])
        if not active.ok:
            logger.debug("Starting %s", SNAPD_SOCKET)
            enabled = self._runner.run(["systemctl", "enable", "--now", SNAPD_SOCKET])
            if not enabled.ok:
                logger.error("Failed to start snapd service")
                raise BootstrapError(
                    Backend.SNAP.value,
                    f"cannot enable {SNAPD_SOCKET}: {enabled.stderr.strip() or enabled.returncode}",
                )

        if not self._snap_link.exists() and not self._snap_link.is_symlink():
            logger.debug("Creating %s symlink", self._snap_link)
            try:
                self._snap_link.symlink_to(self._snap_target)
            except OSError as e:
                logger.error("Failed to create %s symlink", self._snap_link)
                raise BootstrapError(
                    Backend.SNAP.value, f"cannot create {self._snap_link}: {e}"
                ) from e

    # ── flatpak ─────────────────────────────────────────────────

    def _ensure_flatpak(self) -> None:
        if not self._runner.which("flatpak"):
            logger.warning("Flatpak not available, installing %s...", FLATPAK_PACKAGE)
            self._install_tool(Backend.FLATPAK, FLATPAK_PACKAGE)

        remotes = self._runner.run(["flatpak", "remote-list", "--columns=name"])
        if remotes.ok and FLATHUB_REMOTE in remotes.lines:
            return

        logger.debug("Adding %s repository", FLATHUB_REMOTE)
        added = self._runner.run(
            ["flatpak", "remote-add", "--if-not-exists", FLATHUB_REMOTE, FLATHUB_URL]
        )
        if not added.ok:
            logger.error("Failed to add %s repository", FLATHUB_REMOTE)
            raise BootstrapError(
                Backend.FLATPAK.value,
                f"cannot add {FLATHUB_REMOTE} remote: {added.stderr.strip() or added.returncode}",
            )

    # ── helpers ─────────────────────────────────────────────────

    def _install_tool(self, backend: Backend, package: str) -> None:
        try:
            self._install_dependency(package)
        except BootstrapError:
            raise
        except PackagingError as e:
            raise BootstrapError(backend.value, f"cannot install {package}: {e}") from e
