"""
config-guard — public security primitives

File: src/config_guard/security/__init__.py
Last updated: 2026-10-17

Purpose
- Filesystem seam, lexical path rules, permission policies and secret redaction.

Functional requirements
- Only modules without a dependency on ``config_guard.context`` are re-exported here;
  import ``secure_file``/``secure_dir``/``permissions`` from their modules directly.

Non-functional requirements
- Must fail closed for every check.
"""

from config_guard.security.filesystem import Filesystem, OsFilesystem, PathLike, StatInfo
from config_guard.security.path_rules import (
    assert_safe_path,
    contains_traversal_segment,
    is_absolute_path,
    is_likely_windows_mount_path,
    is_stream_wrapper_path,
    is_temp_path,
)
from config_guard.security.policy import DirPolicy, FilePolicy
from config_guard.security.redaction import (
    REDACTED_VALUE,
    is_sensitive_key,
    redact_structure,
    redact_text,
)

__all__ = [
    "DirPolicy",
    "FilePolicy",
    "Filesystem",
    "OsFilesystem",
    "PathLike",
    "REDACTED_VALUE",
    "StatInfo",
    "assert_safe_path",
    "contains_traversal_segment",
    "is_absolute_path",
    "is_likely_windows_mount_path",
    "is_sensitive_key",
    "is_stream_wrapper_path",
    "is_temp_path",
    "redact_structure",
    "redact_text",
]
