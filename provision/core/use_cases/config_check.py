"""
Config check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from provision.core.config.loader import CONFIG_FILE, ConfigError, find_config_file, load_config
from provision.core.models.backend import Backend
from provision.core.models.config import ProvisionConfig
from provision.core.observability.logging_config import is_known_level


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "backend": self.config.backend.value if self.config and self.config.backend else None,
            "package_count": len(self.config.packages) if self.config else 0,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate provisioning configuration and report issues.

    Args:
        config_path: Optional explicit path to provision.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()

    if config_path is None:
        result.errors.append(f"No {CONFIG_FILE} found.")
        return result

    result.config_path = config_path

    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if config.backend is Backend.UNKNOWN:
        result.errors.append("backend: 'unknown' is not a usable package manager")

    if not config.packages:
        result.warnings.append("No packages defined. 'provision apply' has nothing to do.")

    # The same package listed twice for the same backend
    keys = [(p.backend, p.name) for p in config.packages]
    dupes = {p.label for p in config.packages if keys.count((p.backend, p.name)) > 1}
    if dupes:
        result.errors.append(f"Duplicate package entries: {', '.join(sorted(dupes))}")

    for spec in config.packages:
        if spec.backend is Backend.UNKNOWN:
            result.errors.append(f"Package '{spec.name}': 'unknown' is not a usable package manager")
        if spec.purge and spec.state == "present":
            result.warnings.append(f"Package '{spec.name}': purge has no effect when state is present")

    for name, value in (("level", config.logging.level), ("file_level", config.logging.file_level)):
        if value and not is_known_level(value):
            result.warnings.append(f"logging.{name}: unknown level '{value}', WARNING will be used")

    result.valid = len(result.errors) == 0
    return result
