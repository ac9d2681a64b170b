"""
SystemInfo — descriptive facts about the host, for the summary screen.

Nothing in the packaging layer depends on these values; they are
gathered once by ``provision.core.services.sysinfo.system``.
"""

from __future__ import annotations

from pydantic import BaseModel


class SystemInfo(BaseModel):
    """Operating system, kernel and virtualization facts."""

    os_id: str = "unknown"
    os_like: str = "unknown"
    os_version: str = "unknown"
    os_codename: str = "unknown"
    kernel: str = ""
    arch: str = ""
    init_system: str = "unknown"
    is_live: bool = False
    is_vm: bool = False
    is_container: bool = False

    @property
    def is_debian_based(self) -> bool:
        return "debian" in self.os_like or "ubuntu" in self.os_like

    @property
    def is_redhat_based(self) -> bool:
        return any(f in self.os_like for f in ("rhel", "fedora", "centos"))

    @property
    def is_arch_based(self) -> bool:
        return "arch" in self.os_like

    def to_dict(self) -> dict:
        return self.model_dump()
