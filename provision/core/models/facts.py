"""
EnvironmentFacts — immutable per-run facts about the host.

Built once at startup (see ``provision.core.services.sysinfo.facts``)
and passed to the packaging service. Tests construct it directly.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from provision.core.models.backend import Backend


class EnvironmentFacts(BaseModel):
    """What the packaging layer needs to know about the host."""

    model_config = ConfigDict(frozen=True)

    is_root: bool = False
    has_network: bool = False
    default_backend: Backend = Backend.UNKNOWN

    def with_backend(self, backend: Backend) -> EnvironmentFacts:
        """Copy of these facts with a different default backend."""
        return self.model_copy(update={"default_backend": backend})

    def to_dict(self) -> dict:
        return {
            "is_root": self.is_root,
            "has_network": self.has_network,
            "default_backend": self.default_backend.value,
        }
