"""
Domain models — Pydantic types for the provisioning toolkit.

All models are re-exported here for convenient access:

    from provision.core.models import Backend, EnvironmentFacts, OperationResult
"""

from provision.core.models.backend import Backend
from provision.core.models.config import LoggingSettings, PackageSpec, ProvisionConfig
from provision.core.models.facts import EnvironmentFacts
from provision.core.models.result import OperationResult
from provision.core.models.sysinfo import SystemInfo

__all__ = [
    # backend.py
    "Backend",
    # facts.py
    "EnvironmentFacts",
    # config.py
    "LoggingSettings",
    # result.py
    "OperationResult",
    "PackageSpec",
    "ProvisionConfig",
    # sysinfo.py
    "SystemInfo",
]
