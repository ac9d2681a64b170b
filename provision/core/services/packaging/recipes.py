"""
Packaging recipes — the backend capability table.

Pure data. Each backend maps to a BackendRecipe describing how to query,
install, remove, purge, clean up and refresh. Argv templates use the
``{package}`` placeholder (the caller's PackageRef) and ``{name}``
(the installed package name, which differs from the ref only for
rpm-file artifacts). Substitution is plain string replacement so that
format strings meant for the tools (``${Status}``, ``%{NAME}``) pass
through untouched.

Critical steps and cleanup steps are distinct types: a failing
CriticalStep aborts the operation, a failing CleanupStep is a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from provision.adapters.base import CommandResult
from provision.core.models.backend import Backend
from provision.core.services.packaging.errors import UnsupportedBackendError

FLATHUB_REMOTE = "flathub"
FLATHUB_URL = "https://flathub.org/repo/flathub.flatpakrepo"


def _render(argv: tuple[str, ...], package: str, name: str | None = None) -> list[str]:
    resolved = name if name is not None else package
    return [t.replace("{package}", package).replace("{name}", resolved) for t in argv]


# ── Queries ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Query:
    """A read-only probe and how to interpret its result.

    match:
        exit     — exit status 0 means yes
        contains — exit 0 and stdout contains ``needle``
        line     — exit 0 and some stdout line equals the package exactly
        output   — exit 0 and stdout is non-empty
    """

    argv: tuple[str, ...]
    match: Literal["exit", "contains", "line", "output"] = "exit"
    needle: str = ""

    def render(self, package: str, name: str | None = None) -> list[str]:
        return _render(self.argv, package, name)

    def matches(self, result: CommandResult, package: str) -> bool:
        if not result.ok:
            return False
        if self.match == "contains":
            return self.needle in result.stdout
        if self.match == "line":
            target = self.needle or package
            return target in result.lines
        if self.match == "output":
            return bool(result.lines)
        return True


# ── Steps ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class Step:
    """One mutating command in a recipe."""

    stage: str
    argv: tuple[str, ...]

    def render(self, package: str = "", name: str | None = None) -> list[str]:
        return _render(self.argv, package, name)


@dataclass(frozen=True)
class CriticalStep(Step):
    """A step whose failure aborts the operation with ExecutionError."""

    def advisory(self) -> CleanupStep:
        """The same command, demoted to best-effort."""
        return CleanupStep(stage=self.stage, argv=self.argv)


@dataclass(frozen=True)
class CleanupStep(Step):
    """A best-effort step; failure is logged as a warning only."""


# ── Recipe ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class BackendRecipe:
    """Everything the orchestrator needs to drive one backend."""

    backend: Backend
    cli: str                                    # binary that must be on PATH

    query_installed: Query | None = None
    query_available: Query | None = None
    query_config_files: Query | None = None     # paths owned as config, for purge
    query_name: Query | None = None             # ref → installed name (artifacts)

    install: tuple[CriticalStep, ...] = ()
    remove: tuple[CriticalStep, ...] = ()
    purge: tuple[CriticalStep, ...] = ()
    cleanup: tuple[CleanupStep, ...] = ()       # after remove/purge
    refresh: tuple[CriticalStep, ...] = ()      # update: refresh + upgrade
    update_cleanup: tuple[CleanupStep, ...] = ()

    env: dict[str, str] = field(default_factory=dict)
    needs_bootstrap: bool = False
    artifact: bool = False                      # refs are local paths or URLs
    config_leftovers: tuple[str, ...] = ()      # suffixes of configs saved on removal

    @property
    def tracks_config_files(self) -> bool:
        return self.query_config_files is not None

    def removal_steps(self, purge: bool) -> tuple[CriticalStep, ...]:
        return self.purge if purge and self.purge else self.remove


def _rpm_family(tool: str, upgrade_verb: str) -> BackendRecipe:
    return BackendRecipe(
        backend=Backend(tool),
        cli=tool,
        query_installed=Query(("rpm", "-q", "{package}")),
        query_available=Query((tool, "info", "{package}")),
        query_config_files=Query(("rpm", "-qc", "{name}")),
        install=(CriticalStep("install", (tool, "install", "-y", "{package}")),),
        remove=(CriticalStep("remove", (tool, "remove", "-y", "{package}")),),
        cleanup=(
            CleanupStep("autoremove", (tool, "autoremove", "-y")),
            CleanupStep("clean", (tool, "clean", "all")),
        ),
        refresh=(
            CriticalStep("refresh", (tool, "makecache")),
            CriticalStep("upgrade", (tool, upgrade_verb, "-y")),
        ),
        update_cleanup=(CleanupStep("autoremove", (tool, "autoremove", "-y")),),
        config_leftovers=(".rpmsave",),
    )


RECIPES: dict[Backend, BackendRecipe] = {
    Backend.APT: BackendRecipe(
        backend=Backend.APT,
        cli="apt-get",
        query_installed=Query(
            ("dpkg-query", "-W", "-f=${Status}", "{package}"),
            match="contains",
            needle="install ok installed",
        ),
        query_available=Query(("apt-cache", "show", "{package}")),
        query_config_files=Query(("dpkg-query", "-W", "-f=${Conffiles}\\n", "{name}")),
        install=(CriticalStep("install", ("apt-get", "install", "-y", "{package}")),),
        remove=(CriticalStep("remove", ("apt-get", "remove", "-y", "{package}")),),
        purge=(CriticalStep("purge", ("apt-get", "purge", "-y", "{package}")),),
        cleanup=(
            CleanupStep("autoremove", ("apt-get", "autoremove", "-y")),
            CleanupStep("autoclean", ("apt-get", "autoclean")),
        ),
        refresh=(
            CriticalStep("refresh", ("apt-get", "update")),
            CriticalStep("upgrade", ("apt-get", "upgrade", "-y")),
        ),
        update_cleanup=(CleanupStep("autoremove", ("apt-get", "autoremove", "-y")),),
        env={"DEBIAN_FRONTEND": "noninteractive"},
    ),
    Backend.DNF: _rpm_family("dnf", "upgrade"),
    Backend.YUM: _rpm_family("yum", "update"),
    Backend.PACMAN: BackendRecipe(
        backend=Backend.PACMAN,
        cli="pacman",
        query_installed=Query(("pacman", "-Q", "{package}")),
        query_available=Query(("pacman", "-Si", "{package}")),
        install=(CriticalStep("install", ("pacman", "-S", "--noconfirm", "--needed", "{package}")),),
        remove=(CriticalStep("remove", ("pacman", "-R", "--noconfirm", "{package}")),),
        purge=(CriticalStep("purge", ("pacman", "-Rns", "--noconfirm", "{package}")),),
        cleanup=(CleanupStep("clean", ("pacman", "-Sc", "--noconfirm")),),
        refresh=(CriticalStep("upgrade", ("pacman", "-Syu", "--noconfirm")),),
    ),
    Backend.APK: BackendRecipe(
        backend=Backend.APK,
        cli="apk",
        query_installed=Query(("apk", "info", "-e", "{package}")),
        query_available=Query(("apk", "search", "-x", "{package}"), match="output"),
        install=(CriticalStep("install", ("apk", "add", "{package}")),),
        remove=(CriticalStep("remove", ("apk", "del", "{package}")),),
        purge=(CriticalStep("purge", ("apk", "del", "--purge", "{package}")),),
        cleanup=(CleanupStep("clean", ("apk", "cache", "clean")),),
        refresh=(
            CriticalStep("refresh", ("apk", "update")),
            CriticalStep("upgrade", ("apk", "upgrade")),
        ),
    ),
    Backend.SNAP: BackendRecipe(
        backend=Backend.SNAP,
        cli="snap",
        query_installed=Query(("snap", "list", "{package}")),
        query_available=Query(("snap", "info", "{package}")),
        install=(CriticalStep("install", ("snap", "install", "{package}")),),
        remove=(CriticalStep("remove", ("snap", "remove", "{package}")),),
        purge=(CriticalStep("purge", ("snap", "remove", "--purge", "{package}")),),
        refresh=(CriticalStep("refresh", ("snap", "refresh")),),
        needs_bootstrap=True,
    ),
    Backend.FLATPAK: BackendRecipe(
        backend=Backend.FLATPAK,
        cli="flatpak",
        query_installed=Query(("flatpak", "list", "--columns=application"), match="line"),
        query_available=Query(
            ("flatpak", "search", "--columns=application", "{package}"),
            match="line",
        ),
        install=(CriticalStep(
            "install",
            ("flatpak", "install", "-y", "--noninteractive", FLATHUB_REMOTE, "{package}"),
        ),),
        remove=(CriticalStep("remove", ("flatpak", "uninstall", "-y", "--noninteractive", "{package}")),),
        purge=(CriticalStep(
            "purge",
            ("flatpak", "uninstall", "-y", "--noninteractive", "--delete-data", "{package}"),
        ),),
        cleanup=(CleanupStep("unused", ("flatpak", "uninstall", "-y", "--noninteractive", "--unused")),),
        refresh=(CriticalStep("refresh", ("flatpak", "update", "-y", "--noninteractive")),),
        needs_bootstrap=True,
    ),
    Backend.RPM_FILE: BackendRecipe(
        backend=Backend.RPM_FILE,
        cli="rpm",
        query_name=Query(("rpm", "-qp", "--qf", "%{NAME}", "{package}"), match="output"),
        query_installed=Query(("rpm", "-q", "{name}")),
        query_config_files=Query(("rpm", "-qc", "{name}")),
        install=(CriticalStep("install", ("rpm", "-Uvh", "{package}")),),
        remove=(CriticalStep("remove", ("rpm", "-e", "{name}")),),
        artifact=True,
        config_leftovers=(".rpmsave",),
    ),
}


def recipe_for(backend: Backend, operation: str | None = None) -> BackendRecipe:
    """Look up the recipe for a backend.

    Raises:
        UnsupportedBackendError: If the backend has no recipe. A missing
            recipe never falls back to another backend's commands.
    """
    recipe = RECIPES.get(backend)
    if recipe is None:
        raise UnsupportedBackendError(str(backend), operation)
    return recipe


def parse_config_paths(output: str) -> list[str]:
    """Extract absolute paths from a config-file listing.

    Handles both ``rpm -qc`` (one path per line) and dpkg's Conffiles
    field (`` /etc/foo.conf <md5> [obsolete]``). Lines without an
    absolute path, such as rpm's "(contains no files)", are skipped.
    """
    paths: list[str] = []
    for line in output.splitlines():
        tokens = line.split()
        if tokens and tokens[0].startswith("/") and tokens[0] not in paths:
            paths.append(tokens[0])
    return paths
