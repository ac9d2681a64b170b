"""
Packaging orchestrator — install, uninstall and update.

Sequences the fail-fast checks, state probes, bootstrap, the mutating
recipe and the post-mutation cleanup for one package at a time. Steps
run strictly in order; each external command finishes before the next
starts.

Failures of critical steps raise; failures of cleanup steps (autoremove,
cache cleaning, purge file deletion, secondary snap/flatpak refresh) are
logged as warnings and reported in ``OperationResult.warnings``.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from provision.adapters.base import CommandRunner
from provision.adapters.shell.command import SubprocessRunner
from provision.core.models.backend import UNIVERSAL_BACKENDS, Backend
from provision.core.models.facts import EnvironmentFacts
from provision.core.models.result import OperationResult
from provision.core.services.packaging.bootstrap import SNAP_LINK, Bootstrapper
from provision.core.services.packaging.errors import (
    BootstrapError,
    ExecutionError,
    NetworkUnavailableError,
    PackageNotFoundError,
    RootRequiredError,
    UnsupportedBackendError,
)
from provision.core.services.packaging.prober import PackageProber
from provision.core.services.packaging.recipes import (
    RECIPES,
    BackendRecipe,
    CleanupStep,
    CriticalStep,
    recipe_for,
)
from provision.core.services.sysinfo.facts import current_facts

logger = logging.getLogger(__name__)


class PackagingService:
    """Uniform install/uninstall/update over the host's package managers.

    Args:
        facts: Root, network and default backend for this run.
        runner: The single boundary through which commands execute.
        snap_link: Location of the classic-snap symlink (tests override).
    """

    def __init__(
        self,
        facts: EnvironmentFacts,
        runner: CommandRunner,
        snap_link: Path = SNAP_LINK,
    ):
        self._facts = facts
        self._runner = runner
        self._bootstrapper = Bootstrapper(
            runner,
            install_dependency=self._install_dependency,
            snap_link=snap_link,
        )
        self._prober = PackageProber(runner, self._bootstrapper, has_network=facts.has_network)

    @property
    def facts(self) -> EnvironmentFacts:
        return self._facts

    @property
    def prober(self) -> PackageProber:
        return self._prober

    # ── install ─────────────────────────────────────────────────

    def install(self, package: str, backend: Backend | str | None = None) -> OperationResult:
        """Install ``package`` unless it is already installed.

        Raises:
            RootRequiredError, NetworkUnavailableError: before any probing.
            UnsupportedBackendError: no recipe for the backend.
            BootstrapError: snap/flatpak precondition failed.
            PackageNotFoundError: the backend does not offer the package.
            ExecutionError: the install command exited non-zero.
        """
        logger.debug("Installing package: %s (manager: %s)", package, backend or "auto")

        self._require_root("install")
        self._require_network("install")
        resolved = self._resolve_backend(backend, "install")
        recipe = recipe_for(resolved, "install")
        if not recipe.install:
            raise UnsupportedBackendError(resolved.value, "install")

        # Probing snap/flatpak runs their bootstrap, so it is done by now
        if self._prober.is_installed(package, resolved):
            logger.debug("Package '%s' already installed", package)
            return OperationResult.noop("install", resolved, package)

        if not self._prober.is_available(package, resolved):
            logger.error("Package '%s' not available in repositories", package)
            raise PackageNotFoundError(package, resolved.value)

        result = OperationResult(operation="install", backend=resolved, package=package)
        self._run_critical(recipe, recipe.install, result, package)

        logger.info("Successfully installed %s", package)
        return result

    # ── uninstall ───────────────────────────────────────────────

    def uninstall(
        self,
        package: str,
        backend: Backend | str | None = None,
        purge: bool = False,
    ) -> OperationResult:
        """Remove ``package`` if it is installed.

        With ``purge``, configuration is removed too. For backends that
        track config files separately, their paths are captured before
        removal and whatever survives is deleted afterwards.

        Raises:
            RootRequiredError: before any probing.
            UnsupportedBackendError: no recipe for the backend.
            BootstrapError: snap/flatpak precondition failed.
            ExecutionError: the remove command exited non-zero. Captured
                config files are left alone in that case.
        """
        logger.debug("Uninstalling package: %s (manager: %s, purge: %s)", package, backend or "auto", purge)

        self._require_root("uninstall")
        resolved = self._resolve_backend(backend, "uninstall")
        recipe = recipe_for(resolved, "uninstall")
        if not recipe.remove:
            raise UnsupportedBackendError(resolved.value, "uninstall")

        if not self._prober.is_installed(package, resolved):
            logger.debug("Package '%s' not installed", package)
            return OperationResult.noop("uninstall", resolved, package)

        name = self._prober.package_name(package, resolved) or package

        # Removal may take the package's file list with it
        captured: list[str] = []
        if purge and recipe.tracks_config_files:
            captured = self._prober.config_files(name, resolved)
            logger.debug("Captured %d config path(s) for %s", len(captured), name)

        result = OperationResult(operation="uninstall", backend=resolved, package=package)
        self._run_critical(recipe, recipe.removal_steps(purge), result, package, name)

        if captured:
            self._delete_paths(captured, recipe.config_leftovers, result)

        self._run_cleanup(recipe, recipe.cleanup, result)

        logger.info("Successfully uninstalled %s", package)
        return result

    # ── update ──────────────────────────────────────────────────

    def update(self) -> OperationResult:
        """Refresh and upgrade the native backend, then snap/flatpak.

        The native backend is always the detected default. Its refresh
        and upgrade stages are critical; autoremove and the universal
        managers' refresh are best-effort.

        Raises:
            RootRequiredError, NetworkUnavailableError: before anything runs.
            UnsupportedBackendError: the default backend cannot update.
            ExecutionError: a refresh or upgrade stage exited non-zero.
        """
        logger.debug("Updating system packages")

        self._require_root("update")
        self._require_network("update")
        primary = self._facts.default_backend
        recipe = recipe_for(primary, "update")
        if not recipe.refresh:
            raise UnsupportedBackendError(primary.value, "update")

        self._bootstrapper.ensure(primary)

        result = OperationResult(operation="update", backend=primary)
        self._run_critical(recipe, recipe.refresh, result)
        self._run_cleanup(recipe, recipe.update_cleanup, result)

        for extra in UNIVERSAL_BACKENDS:
            extra_recipe = RECIPES[extra]
            if extra is primary or not self._runner.which(extra_recipe.cli):
                continue
            self._run_cleanup(
                extra_recipe,
                tuple(step.advisory() for step in extra_recipe.refresh),
                result,
            )

        logger.info("System updated")
        return result

    # ── checks ──────────────────────────────────────────────────

    def _require_root(self, operation: str) -> None:
        if not self._facts.is_root:
            logger.error("This operation requires root privileges")
            raise RootRequiredError(operation)

    def _require_network(self, operation: str) -> None:
        if not self._facts.has_network:
            logger.error("This operation requires network connectivity")
            raise NetworkUnavailableError(operation)

    def _resolve_backend(self, backend: Backend | str | None, operation: str) -> Backend:
        if backend is None or (isinstance(backend, str) and backend.strip().lower() in ("", "auto")):
            return self._facts.default_backend
        try:
            return Backend.parse(backend)
        except ValueError:
            logger.error("Unsupported package manager: %s", backend)
            raise UnsupportedBackendError(str(backend), operation) from None

    def _install_dependency(self, package: str) -> OperationResult:
        """Install a bootstrap prerequisite with the native backend."""
        native = self._facts.default_backend
        if native.is_universal:
            raise BootstrapError(native.value, f"a native package manager is needed to install {package}")
        return self.install(package, native)

    # ── execution ───────────────────────────────────────────────

    def _run_critical(
        self,
        recipe: BackendRecipe,
        steps: Sequence[CriticalStep],
        result: OperationResult,
        package: str | None = None,
        name: str | None = None,
    ) -> None:
        for step in steps:
            proc = self._runner.run(step.render(package or "", name), env=recipe.env)
            result.stages.append(f"{recipe.backend}:{step.stage}")
            if not proc.ok:
                target = f" {package}" if package else ""
                logger.error("%s %s%s failed (exit %d)", recipe.backend, step.stage, target, proc.returncode)
                raise ExecutionError(
                    recipe.backend.value,
                    package,
                    step.stage,
                    proc.returncode,
                    proc.stderr.strip(),
                )

    def _run_cleanup(
        self,
        recipe: BackendRecipe,
        steps: Sequence[CleanupStep],
        result: OperationResult,
    ) -> None:
        for step in steps:
            proc = self._runner.run(step.render(), env=recipe.env)
            result.stages.append(f"{recipe.backend}:{step.stage}")
            if not proc.ok:
                message = f"{recipe.backend} {step.stage} failed (exit {proc.returncode})"
                logger.warning(message)
                result.warnings.append(message)

    def _delete_paths(
        self,
        paths: Sequence[str],
        leftover_suffixes: Sequence[str],
        result: OperationResult,
    ) -> None:
        """Best-effort removal of captured config paths."""
        for raw in paths:
            for candidate in (Path(raw), *(Path(raw + suffix) for suffix in leftover_suffixes)):
                if not candidate.exists() and not candidate.is_symlink():
                    continue
                try:
                    if candidate.is_dir() and not candidate.is_symlink():
                        shutil.rmtree(candidate)
                    else:
                        candidate.unlink()
                except OSError as e:
                    message = f"Cannot remove {candidate}: {e}"
                    logger.warning(message)
                    result.warnings.append(message)
                    continue
                logger.debug("Removed %s", candidate)
                result.removed_paths.append(str(candidate))


# ── Process-wide convenience API ────────────────────────────────


def default_service(runner: CommandRunner | None = None) -> PackagingService:
    """PackagingService bound to this process's facts and the real host."""
    runner = runner or SubprocessRunner()
    return PackagingService(current_facts(runner), runner)


def install(package: str, backend: Backend | str | None = None) -> OperationResult:
    """Install a package on this host. See ``PackagingService.install``."""
    return default_service().install(package, backend)


def uninstall(
    package: str,
    backend: Backend | str | None = None,
    purge: bool = False,
) -> OperationResult:
    """Uninstall a package from this host. See ``PackagingService.uninstall``."""
    return default_service().uninstall(package, backend, purge)


def update() -> OperationResult:
    """Update this host's packages. See ``PackagingService.update``."""
    return default_service().update()
