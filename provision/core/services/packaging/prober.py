"""
Package state prober — "is it installed?" and "is it available?".

Read-only against the host package database. Nothing is cached: every
call asks the backend again, because other processes and admins can
change the system between calls.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

from provision.adapters.base import CommandRunner
from provision.core.models.backend import Backend
from provision.core.services.packaging.bootstrap import Bootstrapper
from provision.core.services.packaging.recipes import parse_config_paths, recipe_for

logger = logging.getLogger(__name__)

_REMOTE_SCHEMES = ("http", "https", "ftp")


class PackageProber:
    """Backend-specific package state queries.

    Args:
        runner: Command runner for the queries.
        bootstrapper: Brings snap/flatpak up before they are queried.
        has_network: Whether remote artifacts can be considered reachable.
    """

    def __init__(
        self,
        runner: CommandRunner,
        bootstrapper: Bootstrapper,
        has_network: bool = False,
    ):
        self._runner = runner
        self._bootstrapper = bootstrapper
        self._has_network = has_network

    def is_installed(self, package: str, backend: Backend) -> bool:
        """Whether ``package`` is present in the local package database.

        Unknown is reported as False, so callers lean toward attempting
        an install rather than silently skipping one.
        """
        recipe = recipe_for(backend, "query")
        if recipe.needs_bootstrap:
            self._bootstrapper.ensure(backend)

        query = recipe.query_installed
        if query is None:
            logger.warning("Cannot check package installation for %s", backend)
            return False

        name = self.package_name(package, backend)
        if name is None:
            logger.debug("Cannot resolve package name for %s, assuming not installed", package)
            return False

        result = self._runner.run(query.render(package, name), env=recipe.env)
        installed = query.matches(result, name)
        logger.debug("%s installed via %s: %s", package, backend, installed)
        return installed

    def is_available(self, package: str, backend: Backend) -> bool:
        """Whether ``package`` can be installed from ``backend``.

        For artifact backends (rpm-file) this only checks that the file
        exists locally or that a well-formed URL could be fetched given
        network access; it does not prove the remote file exists.
        """
        recipe = recipe_for(backend, "query")
        if recipe.artifact:
            return self._artifact_available(package)

        if recipe.needs_bootstrap:
            self._bootstrapper.ensure(backend)

        query = recipe.query_available
        if query is None:
            logger.warning("Cannot check package availability for %s", backend)
            return False

        result = self._runner.run(query.render(package), env=recipe.env)
        available = query.matches(result, package)
        logger.debug("%s available via %s: %s", package, backend, available)
        return available

    def package_name(self, package: str, backend: Backend) -> str | None:
        """Name the backend's database knows ``package`` by.

        Identity for repository backends. For rpm-file the name is read
        from the artifact header; None if it cannot be read.
        """
        recipe = recipe_for(backend, "query")
        if recipe.query_name is None:
            return package

        result = self._runner.run(recipe.query_name.render(package), env=recipe.env)
        if not recipe.query_name.matches(result, package):
            return None
        return result.lines[0]

    def config_files(self, name: str, backend: Backend) -> list[str]:
        """Configuration paths owned by an installed package.

        Returns an empty list when the backend does not track them or the
        query fails.
        """
        recipe = recipe_for(backend, "query")
        query = recipe.query_config_files
        if query is None:
            return []

        result = self._runner.run(query.render(name, name), env=recipe.env)
        if not result.ok:
            logger.debug("Config file query for %s failed (exit %d)", name, result.returncode)
            return []
        return parse_config_paths(result.stdout)

    def _artifact_available(self, ref: str) -> bool:
        parsed = urlparse(ref)
        if parsed.scheme in _REMOTE_SCHEMES:
            if not parsed.netloc:
                logger.debug("Malformed URL: %s", ref)
                return False
            if not self._has_network:
                logger.debug("No network to fetch %s", ref)
            return self._has_network

        path = Path(parsed.path if parsed.scheme == "file" else ref).expanduser()
        return path.is_file()
