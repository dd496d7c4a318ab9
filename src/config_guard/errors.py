"""
config-guard — public error types

File: src/config_guard/errors.py
Last updated: 2026-10-17

Purpose
- Define the exception taxonomy shared by policy checks, loading, discovery, and installation.

Functional requirements
- ``SecurityError`` carries the offending path, octal mode, and policy name for diagnosis.
- Aggregating errors keep the per-candidate rejection map available to callers.

Non-functional requirements
- Messages never include file contents.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence


class ConfigGuardError(Exception):
    """Base class for every error raised by ``config_guard``."""


class SecurityError(ConfigGuardError):
    """Raised when a path or file fails filesystem security policy."""

    def __init__(
        self,
        reason: str,
        *,
        path: str | None = None,
        mode: int | None = None,
        policy: str | None = None,
    ) -> None:
        self.reason = reason
        self.path = path
        self.mode = mode
        self.policy = policy
        super().__init__(reason)

    @property
    def mode_octal(self) -> str | None:
        if self.mode is None:
            return None
        return format(self.mode, "o")


class ConfigValidationError(ConfigGuardError, ValueError):
    """Raised when a config section is present but structurally invalid."""

    def __init__(self, message: str, *, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class ConfigLoadError(ConfigGuardError, ValueError):
    """Raised when a config file cannot be read or decoded."""


class BootstrapError(ConfigLoadError):
    """Raised when no discovery candidate yields a usable runtime config."""

    def __init__(
        self,
        message: str,
        *,
        tried_paths: Sequence[str] = (),
        rejected: Mapping[str, str] | None = None,
    ) -> None:
        self.tried_paths = tuple(tried_paths)
        self.rejected = dict(rejected or {})
        super().__init__(message)


class InstallError(ConfigGuardError, RuntimeError):
    """Raised when every install candidate was rejected."""

    def __init__(self, message: str, *, rejected: Mapping[str, str] | None = None) -> None:
        self.rejected = dict(rejected or {})
        super().__init__(message)


class ConfigHolderError(ConfigGuardError, RuntimeError):
    """Raised on double initialization or access before initialization."""


__all__ = [
    "BootstrapError",
    "ConfigGuardError",
    "ConfigHolderError",
    "ConfigLoadError",
    "ConfigValidationError",
    "InstallError",
    "SecurityError",
]
