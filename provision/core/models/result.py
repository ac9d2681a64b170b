"""
OperationResult — what a successful packaging operation reports back.

Failures are never represented here: they are raised as
``PackagingError`` subclasses. A result means the primary mutation
succeeded (or was not needed); advisory stages that failed along the
way are listed in ``warnings``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from provision.core.models.backend import Backend


class OperationResult(BaseModel):
    """Outcome of install, uninstall or update."""

    operation: Literal["install", "uninstall", "update"]
    backend: Backend
    package: str | None = None
    status: Literal["ok", "noop"] = "ok"

    stages: list[str] = Field(default_factory=list)       # stages that ran, in order
    warnings: list[str] = Field(default_factory=list)
    removed_paths: list[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether a mutating command ran."""
        return self.status == "ok"

    @classmethod
    def noop(
        cls,
        operation: Literal["install", "uninstall", "update"],
        backend: Backend,
        package: str | None = None,
    ) -> OperationResult:
        """Create a result for an operation whose goal was already met."""
        return cls(operation=operation, backend=backend, package=package, status="noop")

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "backend": self.backend.value,
            "package": self.package,
            "status": self.status,
            "stages": list(self.stages),
            "warnings": list(self.warnings),
            "removed_paths": list(self.removed_paths),
        }
