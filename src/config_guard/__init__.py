"""
config-guard — package root

File: src/config_guard/__init__.py
Last updated: 2026-10-17

Purpose
- Fail-closed loading, validation and installation of a JSON runtime config file.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).

Non-functional requirements
- Keep the public surface small; subpackages export the full API.
"""

from config_guard.config.holder import ConfigHolder
from config_guard.config.repository import ConfigRepository
from config_guard.context import JailBoundary, PathJail, RuntimeContext
from config_guard.errors import (
    BootstrapError,
    ConfigGuardError,
    ConfigHolderError,
    ConfigLoadError,
    ConfigValidationError,
    InstallError,
    SecurityError,
)

__version__ = "0.1.0"

__all__ = [
    "BootstrapError",
    "ConfigGuardError",
    "ConfigHolder",
    "ConfigHolderError",
    "ConfigLoadError",
    "ConfigRepository",
    "ConfigValidationError",
    "InstallError",
    "JailBoundary",
    "PathJail",
    "RuntimeContext",
    "SecurityError",
    "__version__",
]
