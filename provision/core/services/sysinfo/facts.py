"""
Environment facts — root, network and native package manager detection.

Facts are evaluated once per process by ``current_facts()`` and reused.
The packaging service receives them as an immutable EnvironmentFacts;
nothing below it reads global state.
"""

from __future__ import annotations

import logging
import os
import socket

from provision.adapters.base import CommandRunner
from provision.adapters.shell.command import SubprocessRunner
from provision.core.models.backend import DETECTION_ORDER, Backend
from provision.core.models.facts import EnvironmentFacts

logger = logging.getLogger(__name__)

# Two well-known public resolvers; first answer wins
NETWORK_PROBE_ENDPOINTS: tuple[tuple[str, int], ...] = (
    ("8.8.8.8", 53),
    ("1.1.1.1", 53),
)
NETWORK_PROBE_TIMEOUT = 2.0

_facts: EnvironmentFacts | None = None


def has_root() -> bool:
    """Whether the effective user is the superuser."""
    return os.geteuid() == 0


def check_endpoint_reachable(host: str, port: int, timeout: float = NETWORK_PROBE_TIMEOUT) -> bool:
    """Single TCP connect probe. Never raises."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def has_network() -> bool:
    """Whether at least one public endpoint answers a short probe."""
    for host, port in NETWORK_PROBE_ENDPOINTS:
        if check_endpoint_reachable(host, port):
            logger.debug("Network connectivity confirmed via %s", host)
            return True
    logger.warning("No network connectivity detected")
    return False


def detect_backend(runner: CommandRunner) -> Backend:
    """First native package manager found on PATH, in priority order."""
    # Lazy: the packaging package imports this module at load time
    from provision.core.services.packaging.recipes import RECIPES

    for backend in DETECTION_ORDER:
        if runner.which(RECIPES[backend].cli):
            logger.debug("Package manager: %s", backend)
            return backend

    logger.warning("No supported package manager detected")
    return Backend.UNKNOWN


def detect_environment(
    runner: CommandRunner,
    backend_override: Backend | None = None,
) -> EnvironmentFacts:
    """Probe the host and build its EnvironmentFacts.

    Args:
        runner: Runner used for the PATH lookups.
        backend_override: Use this backend instead of detecting one.
    """
    is_root = has_root()
    if is_root:
        logger.debug("Running as root")
    else:
        logger.debug("Running as uid %d", os.geteuid())

    backend = backend_override if backend_override is not None else detect_backend(runner)
    return EnvironmentFacts(
        is_root=is_root,
        has_network=has_network(),
        default_backend=backend,
    )


def current_facts(
    runner: CommandRunner | None = None,
    backend_override: Backend | None = None,
) -> EnvironmentFacts:
    """Facts for this process, detected on first use and cached."""
    global _facts
    if _facts is None:
        _facts = detect_environment(runner or SubprocessRunner(), backend_override)
    return _facts


def set_facts(facts: EnvironmentFacts) -> None:
    """Install externally supplied facts for this process."""
    global _facts
    _facts = facts


def reset_facts() -> None:
    """Forget cached facts (tests, or a deliberate re-detection)."""
    global _facts
    _facts = None
