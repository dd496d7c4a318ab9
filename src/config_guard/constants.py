"""Stable constants shared across config-guard modules."""

from __future__ import annotations

from typing import Final

# Application identity used to build default candidate paths.
APP_NAME: Final[str] = "config-guard"
APP_DISPLAY_NAME: Final[str] = "ConfigGuard"
ENV_PREFIX: Final[str] = "CONFIG_GUARD_"

# Environment variables read by the library itself.
ENV_CONFIG_PATH: Final[str] = f"{ENV_PREFIX}CONFIG"
ENV_PATH_JAIL: Final[str] = f"{ENV_PREFIX}PATH_JAIL"
ENV_PATH_JAIL_BOUNDARY: Final[str] = f"{ENV_PREFIX}PATH_JAIL_BOUNDARY"
ENV_DOCUMENT_ROOT: Final[str] = f"{ENV_PREFIX}DOCUMENT_ROOT"

# Web-server provided document root variables (CGI / FastCGI / WSGI environ).
DOCUMENT_ROOT_ENV_KEYS: Final[tuple[str, ...]] = ("DOCUMENT_ROOT", "CONTEXT_DOCUMENT_ROOT")

# Runtime config file names.
RUNTIME_CONFIG_FILENAME: Final[str] = "config.runtime.json"
CONFIG_FILENAME: Final[str] = "config.json"

# Size caps.
DEFAULT_MAX_BYTES: Final[int] = 1024 * 1024
INTEGRITY_MANIFEST_MAX_BYTES: Final[int] = 16 * 1024 * 1024

# Modes applied by the installer.
RUNTIME_CONFIG_FILE_MODE: Final[int] = 0o600
RUNTIME_CONFIG_DIR_MODE: Final[int] = 0o750

# Locations considered temporary (valid but discouraged for persistent secrets).
TEMP_DIR_PREFIXES: Final[tuple[str, ...]] = ("/tmp", "/var/tmp", "/run", "/dev/shm")

# Loopback hosts where plain-HTTP JSON-RPC is tolerated.
LOOPBACK_HOSTS: Final[frozenset[str]] = frozenset({"localhost", "127.0.0.1", "::1"})

ZERO_EVM_ADDRESS: Final[str] = "0x" + "0" * 40

__all__ = [
    "APP_DISPLAY_NAME",
    "APP_NAME",
    "CONFIG_FILENAME",
    "DEFAULT_MAX_BYTES",
    "DOCUMENT_ROOT_ENV_KEYS",
    "ENV_CONFIG_PATH",
    "ENV_DOCUMENT_ROOT",
    "ENV_PATH_JAIL",
    "ENV_PATH_JAIL_BOUNDARY",
    "ENV_PREFIX",
    "INTEGRITY_MANIFEST_MAX_BYTES",
    "LOOPBACK_HOSTS",
    "RUNTIME_CONFIG_DIR_MODE",
    "RUNTIME_CONFIG_FILENAME",
    "RUNTIME_CONFIG_FILE_MODE",
    "TEMP_DIR_PREFIXES",
    "ZERO_EVM_ADDRESS",
]
