"""
Packaging service — package re-exports.

    from provision.core.services.packaging import install, uninstall, update

Each symbol lives in its single-responsibility module, leaf-first:
errors → recipes (data) → bootstrap → prober → orchestrator.
"""

# ── Errors ──
from provision.core.services.packaging.errors import (  # noqa: F401
    BootstrapError,
    ExecutionError,
    NetworkUnavailableError,
    PackageNotFoundError,
    PackagingError,
    RootRequiredError,
    UnsupportedBackendError,
)

# ── Data ──
from provision.core.services.packaging.recipes import (  # noqa: F401
    RECIPES,
    BackendRecipe,
    CleanupStep,
    CriticalStep,
    Query,
    recipe_for,
)

# ── Probing ──
from provision.core.services.packaging.bootstrap import Bootstrapper  # noqa: F401
from provision.core.services.packaging.prober import PackageProber  # noqa: F401

# ── Orchestration ──
from provision.core.services.packaging.orchestrator import (  # noqa: F401
    PackagingService,
    default_service,
    install,
    uninstall,
    update,
)
