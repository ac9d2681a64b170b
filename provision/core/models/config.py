"""
Provisioning config model — loaded from provision.yml.

Declares the host's backend override, logging preferences and the
package list that ``provision apply`` works through.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from provision.core.models.backend import Backend


def _parse_backend(value: object) -> Backend | None:
    """Accept None/'auto'/'' as "use the detected default"."""
    if value is None:
        return None
    if isinstance(value, Backend):
        return value
    text = str(value).strip().lower()
    if text in ("", "auto", "default"):
        return None
    return Backend.parse(text)


class LoggingSettings(BaseModel):
    """Logging preferences (CLI flags and env vars take precedence)."""

    level: str = "WARNING"
    file_level: str | None = None
    directory: str | None = None    # timestamped log file per run
    colorize: bool = True


class PackageSpec(BaseModel):
    """One entry of the package list."""

    name: str
    backend: Backend | None = None
    state: Literal["present", "absent"] = "present"
    purge: bool = False

    @field_validator("backend", mode="before")
    @classmethod
    def _backend(cls, value: object) -> Backend | None:
        return _parse_backend(value)

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("package name must not be empty")
        return value

    @property
    def label(self) -> str:
        """Human-readable identifier, e.g. ``flatpak:org.gimp.GIMP``."""
        return f"{self.backend.value}:{self.name}" if self.backend else self.name


class ProvisionConfig(BaseModel):
    """Root configuration — loaded from provision.yml."""

    version: int = 1

    backend: Backend | None = None
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    packages: list[PackageSpec] = Field(default_factory=list)

    @field_validator("backend", mode="before")
    @classmethod
    def _backend(cls, value: object) -> Backend | None:
        return _parse_backend(value)

    def packages_by_state(self, state: str) -> list[PackageSpec]:
        """All package entries with the given desired state."""
        return [p for p in self.packages if p.state == state]
