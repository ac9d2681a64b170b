"""
Host detection — environment facts for packaging, system info for display.
"""

from provision.core.services.sysinfo.facts import (  # noqa: F401
    current_facts,
    detect_backend,
    detect_environment,
    has_network,
    has_root,
    reset_facts,
    set_facts,
)
from provision.core.services.sysinfo.system import detect_system_info  # noqa: F401
