"""
System information — OS, kernel, init system and virtualization.

Read-only probes of the host. Every path is resolved against ``root``
so tests can point the detection at a fake filesystem tree.
"""

from __future__ import annotations

import logging
import platform
import re
from pathlib import Path

from provision.adapters.base import CommandRunner
from provision.adapters.shell.command import SubprocessRunner
from provision.core.models.sysinfo import SystemInfo

logger = logging.getLogger(__name__)

_VM_PRODUCTS = re.compile(r"VirtualBox|VMware|KVM|QEMU")
_CONTAINER_CGROUP = re.compile(r"docker|lxc")
_CODENAME_IN_VERSION = re.compile(r"\(([^)]+)\)")


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def parse_release_file(text: str) -> dict[str, str]:
    """Parse a shell-style ``KEY=value`` release file into a dict."""
    data: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


# ── OS ──────────────────────────────────────────────────────────


def _detect_os(root: Path) -> dict[str, str]:
    os_release = _read(root / "etc/os-release")
    if os_release is not None:
        data = parse_release_file(os_release)
        os_id = data.get("ID", "unknown")
        version = (
            data.get("VERSION_ID")
            or data.get("VARIANT_ID")
            or data.get("BUILD_ID")
            or "rolling"
        )
        codename = data.get("VERSION_CODENAME") or data.get("VARIANT")
        if not codename:
            match = _CODENAME_IN_VERSION.search(data.get("VERSION", ""))
            codename = match.group(1) if match else "unknown"
        info = {
            "os_id": os_id,
            "os_like": data.get("ID_LIKE") or os_id,
            "os_version": version,
            "os_codename": codename,
        }
        logger.debug("OS detected: %s %s (%s)", os_id, version, codename)
        return info

    lsb_release = _read(root / "etc/lsb-release")
    if lsb_release is not None:
        data = parse_release_file(lsb_release)
        os_id = data.get("DISTRIB_ID", "unknown").lower()
        info = {
            "os_id": os_id,
            "os_like": os_id,
            "os_version": data.get("DISTRIB_RELEASE", "unknown"),
            "os_codename": data.get("DISTRIB_CODENAME", "unknown"),
        }
        logger.debug("OS detected via LSB: %s %s", os_id, info["os_version"])
        return info

    logger.warning("Could not detect OS via standard methods")
    return {}


# ── Init system ─────────────────────────────────────────────────


def _detect_init_system(root: Path) -> str:
    """Detect the init system (systemd, openrc, sysvinit, or unknown)."""
    if (root / "run/systemd/system").is_dir():
        return "systemd"
    if (root / "sbin/openrc").is_file():
        return "openrc"
    init = root / "sbin/init"
    if init.is_file() and not init.is_symlink():
        return "sysvinit"
    return "unknown"


# ── Live media / virtualization ─────────────────────────────────


def _detect_live(root: Path) -> bool:
    cmdline = _read(root / "proc/cmdline") or ""
    if "boot=live" in cmdline.split():
        return True
    return (root / "lib/live/mount").is_dir() or (root / "run/live").is_dir()


def _detect_vm(runner: CommandRunner, root: Path) -> bool:
    if runner.which("systemd-detect-virt"):
        result = runner.run(["systemd-detect-virt"])
        kind = result.stdout.strip()
        if kind and kind != "none":
            logger.debug("Virtualization detected: %s", kind)
            return True
        return False

    product = _read(root / "sys/class/dmi/id/product_name")
    if product and _VM_PRODUCTS.search(product):
        logger.debug("VM detected: %s", product.strip())
        return True
    return False


def _detect_container(root: Path) -> bool:
    if (root / ".dockerenv").exists():
        return True
    cgroup = _read(root / "proc/1/cgroup") or ""
    return bool(_CONTAINER_CGROUP.search(cgroup))


# ── Public API ──────────────────────────────────────────────────


def detect_system_info(runner: CommandRunner | None = None, root: Path = Path("/")) -> SystemInfo:
    """Gather descriptive facts about the host.

    Args:
        runner: Runner for ``systemd-detect-virt`` (default: subprocess).
        root: Filesystem root the probes read from.
    """
    runner = runner or SubprocessRunner()
    logger.debug("Starting system detection")
    uname = platform.uname()
    info = SystemInfo(
        **_detect_os(root),
        kernel=uname.release,
        arch=uname.machine,
        init_system=_detect_init_system(root),
        is_live=_detect_live(root),
        is_vm=_detect_vm(runner, root),
        is_container=_detect_container(root),
    )
    logger.debug("Init system: %s", info.init_system)
    return info
