"""
config-guard — file and directory policy value objects

File: src/config_guard/security/policy.py
Last updated: 2026-10-17

Purpose
- Immutable descriptors of what a trusted config file or directory may look like.

Functional requirements
- All fields keyword-only; presets built through named constructors.
- ``FilePolicy.max_bytes`` must be >= 1.

Non-functional requirements
- Presets return fresh frozen instances; nothing here touches the filesystem.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from config_guard.constants import DEFAULT_MAX_BYTES, INTEGRITY_MANIFEST_MAX_BYTES


@dataclass(frozen=True, slots=True, kw_only=True)
class FilePolicy:
    """Strict-by-default policy for reading a config file from disk."""

    allow_symlinks: bool = False
    allow_world_readable: bool = False
    allow_group_writable: bool = False
    allow_world_writable: bool = False
    max_bytes: int = DEFAULT_MAX_BYTES
    check_parent_dirs: bool = True
    enforce_owner: bool = True
    name: str = "custom"

    def __post_init__(self) -> None:
        if isinstance(self.max_bytes, bool) or not isinstance(self.max_bytes, int):
            raise ValueError("max_bytes must be an integer")
        if self.max_bytes < 1:
            raise ValueError("max_bytes must be >= 1")

    @classmethod
    def strict(cls) -> FilePolicy:
        return cls(name="strict")

    @classmethod
    def public_readable(cls) -> FilePolicy:
        """Non-secret JSON (e.g. crypto manifest): world-readable, never writable."""

        return cls(allow_world_readable=True, enforce_owner=False, name="public_readable")

    @classmethod
    def integrity_manifest(cls) -> FilePolicy:
        """File-hash maps; same as ``public_readable`` with a larger size cap."""

        return cls(
            allow_world_readable=True,
            enforce_owner=False,
            max_bytes=INTEGRITY_MANIFEST_MAX_BYTES,
            name="integrity_manifest",
        )

    def with_changes(self, **changes: Any) -> FilePolicy:
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True, slots=True, kw_only=True)
class DirPolicy:
    """Policy for directories referenced from runtime config."""

    allow_symlinks: bool = False
    allow_group_writable: bool = False
    allow_world_writable: bool = False
    allow_world_readable: bool = False
    allow_world_executable: bool = False
    check_parent_dirs: bool = True
    enforce_owner: bool = True
    name: str = "custom"

    @classmethod
    def strict(cls) -> DirPolicy:
        return cls(name="strict")

    @classmethod
    def secrets_dir(cls) -> DirPolicy:
        """Keys and vaults: no world access, no foreign writers, owner enforced."""

        return cls(name="secrets_dir")

    @classmethod
    def integrity_root_dir(cls) -> DirPolicy:
        """Deployed code tree: world read+exec allowed, never writable."""

        return cls(
            allow_world_readable=True,
            allow_world_executable=True,
            enforce_owner=False,
            name="integrity_root_dir",
        )

    @classmethod
    def tx_outbox_dir(cls) -> DirPolicy:
        """Outbox shared with a service group (root:group 0770 style)."""

        return cls(allow_group_writable=True, name="tx_outbox_dir")

    def with_changes(self, **changes: Any) -> DirPolicy:
        return dataclasses.replace(self, **changes)


__all__ = ["DirPolicy", "FilePolicy"]
