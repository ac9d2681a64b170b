"""
Shared test fixtures and configuration.
"""

import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from provision.adapters.mock import MockRunner
from provision.core.models.backend import Backend
from provision.core.models.facts import EnvironmentFacts
from provision.core.services.packaging.orchestrator import PackagingService
from provision.core.services.sysinfo.facts import reset_facts

# Binaries a typical Debian workstation has on PATH
DEBIAN_COMMANDS = ("apt-get", "apt-cache", "dpkg-query", "systemctl")


@pytest.fixture(autouse=True)
def _fresh_facts():
    """No test sees facts cached by another."""
    reset_facts()
    yield
    reset_facts()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging reconfigures the root logger; undo it after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def make_service(tmp_path: Path) -> Callable[..., tuple[PackagingService, MockRunner]]:
    """Factory for a PackagingService wired to a fresh MockRunner.

    The classic-snap symlink is redirected into ``tmp_path``.
    """

    def _make(
        backend: Backend = Backend.APT,
        is_root: bool = True,
        has_network: bool = True,
        commands: tuple[str, ...] = DEBIAN_COMMANDS,
    ) -> tuple[PackagingService, MockRunner]:
        runner = MockRunner(commands=commands)
        facts = EnvironmentFacts(is_root=is_root, has_network=has_network, default_backend=backend)
        service = PackagingService(facts, runner, snap_link=tmp_path / "snap")
        return service, runner

    return _make
