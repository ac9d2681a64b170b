"""
Backend — the closed set of package managers the toolkit can drive.
"""

from __future__ import annotations

from enum import StrEnum


class Backend(StrEnum):
    """Package manager identifiers."""

    APT = "apt"
    DNF = "dnf"
    YUM = "yum"
    PACMAN = "pacman"
    APK = "apk"
    SNAP = "snap"
    FLATPAK = "flatpak"
    RPM_FILE = "rpm-file"
    UNKNOWN = "unknown"   # detection sentinel, never has a recipe

    @classmethod
    def parse(cls, value: str | Backend) -> Backend:
        """Convert a user-supplied identifier to a Backend.

        Case-insensitive. ``rpm`` is accepted as an alias of ``rpm-file``.

        Raises:
            ValueError: If the identifier names no known backend.
        """
        if isinstance(value, Backend):
            return value
        key = value.strip().lower()
        key = _ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown package manager: {value!r}") from None

    @property
    def is_universal(self) -> bool:
        """Whether this is a distro-independent manager layered on the OS one."""
        return self in (Backend.SNAP, Backend.FLATPAK)


_ALIASES: dict[str, str] = {
    "rpm": "rpm-file",
    "rpm_file": "rpm-file",
}

# Detection priority for the host's native package manager
DETECTION_ORDER: tuple[Backend, ...] = (
    Backend.APT,
    Backend.DNF,
    Backend.YUM,
    Backend.PACMAN,
    Backend.APK,
)

# Universal managers refreshed alongside the native one during update
UNIVERSAL_BACKENDS: tuple[Backend, ...] = (Backend.SNAP, Backend.FLATPAK)
