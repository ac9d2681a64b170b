"""
Apply use case — bring the host in line with the configured package list.

Entries are processed in file order. A failing entry is recorded and
processing continues with the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from provision.core.models.config import PackageSpec, ProvisionConfig
from provision.core.services.packaging.errors import PackagingError
from provision.core.services.packaging.orchestrator import PackagingService

logger = logging.getLogger(__name__)


@dataclass
class EntryOutcome:
    """What happened to one package entry."""

    package: str
    backend: str | None
    state: str
    status: str = "pending"         # ok | noop | failed
    error: str | None = None
    exit_code: int = 0
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "package": self.package,
            "backend": self.backend,
            "state": self.state,
            "status": self.status,
            "error": self.error,
            "exit_code": self.exit_code,
            "warnings": self.warnings,
        }


@dataclass
class ApplyReport:
    """Result of applying a package list."""

    entries: list[EntryOutcome] = field(default_factory=list)

    @property
    def changed(self) -> int:
        return sum(1 for e in self.entries if e.status == "ok")

    @property
    def unchanged(self) -> int:
        return sum(1 for e in self.entries if e.status == "noop")

    @property
    def failed(self) -> int:
        return sum(1 for e in self.entries if e.status == "failed")

    @property
    def exit_code(self) -> int:
        """Exit code of the first failed entry, 0 if none failed."""
        for entry in self.entries:
            if entry.status == "failed":
                return entry.exit_code
        return 0

    def to_dict(self) -> dict:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "changed": self.changed,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "exit_code": self.exit_code,
        }


def _apply_one(spec: PackageSpec, service: PackagingService) -> EntryOutcome:
    outcome = EntryOutcome(
        package=spec.name,
        backend=spec.backend.value if spec.backend else None,
        state=spec.state,
    )
    try:
        if spec.state == "present":
            result = service.install(spec.name, spec.backend)
        else:
            result = service.uninstall(spec.name, spec.backend, purge=spec.purge)
    except PackagingError as e:
        logger.error("%s: %s", spec.label, e)
        outcome.status = "failed"
        outcome.error = str(e)
        outcome.exit_code = e.exit_code
        return outcome

    outcome.status = result.status
    outcome.warnings = list(result.warnings)
    return outcome


def apply_packages(config: ProvisionConfig, service: PackagingService) -> ApplyReport:
    """Install or remove every package entry of ``config``.

    Args:
        config: Loaded configuration.
        service: Packaging service bound to this host.

    Returns:
        ApplyReport with one outcome per entry, in order.
    """
    report = ApplyReport()
    for spec in config.packages:
        logger.debug("Applying %s (%s)", spec.label, spec.state)
        report.entries.append(_apply_one(spec, service))

    logger.info(
        "Applied %d package(s): %d changed, %d unchanged, %d failed",
        len(report.entries), report.changed, report.unchanged, report.failed,
    )
    return report
