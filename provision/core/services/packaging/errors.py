"""
Packaging errors — the failure taxonomy of install, uninstall and update.

Every error carries an ``exit_code`` the CLI uses as its process status.
Codes follow sysexits(3) where one fits.
"""

from __future__ import annotations


class PackagingError(Exception):
    """Base class for all packaging failures."""

    exit_code: int = 1


class RootRequiredError(PackagingError):
    """The operation needs superuser privileges and we don't have them."""

    exit_code = 77  # EX_NOPERM

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} requires root privileges")


class NetworkUnavailableError(PackagingError):
    """The operation needs network connectivity and there is none."""

    exit_code = 69  # EX_UNAVAILABLE

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} requires network connectivity")


class UnsupportedBackendError(PackagingError):
    """No recipe exists for this backend (or this operation on it)."""

    exit_code = 64  # EX_USAGE

    def __init__(self, backend: str, operation: str | None = None):
        self.backend = backend
        self.operation = operation
        detail = f" for {operation}" if operation else ""
        super().__init__(f"Unsupported package manager{detail}: {backend}")


class PackageNotFoundError(PackagingError):
    """The package is not offered by the backend's repositories."""

    exit_code = 66  # EX_NOINPUT

    def __init__(self, package: str, backend: str):
        self.package = package
        self.backend = backend
        super().__init__(f"Package '{package}' not available via {backend}")


class BootstrapError(PackagingError):
    """A backend precondition (service, symlink, remote) could not be met."""

    exit_code = 70  # EX_SOFTWARE

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend} bootstrap failed: {message}")


class ExecutionError(PackagingError):
    """A package manager command exited non-zero."""

    def __init__(
        self,
        backend: str,
        package: str | None,
        stage: str,
        returncode: int,
        stderr: str = "",
    ):
        self.backend = backend
        self.package = package
        self.stage = stage
        self.returncode = returncode
        self.stderr = stderr
        target = f" {package}" if package else ""
        super().__init__(f"{backend} {stage}{target} failed (exit {returncode})")

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.returncode if self.returncode > 0 else 1
