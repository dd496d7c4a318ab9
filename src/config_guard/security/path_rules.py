"""
config-guard — lexical path rules

File: src/config_guard/security/path_rules.py
Last updated: 2026-10-17

Purpose
- Pure string checks shared by policy enforcement, repository loading, discovery, and
  installation: NUL bytes, stream wrappers, traversal segments, absoluteness, and the
  location heuristics (temp dirs, Windows mounts, document roots).

Functional requirements
- Traversal detection treats both ``/`` and ``\\`` as separators.
- ``assert_safe_path`` raises ``SecurityError`` with a label-prefixed reason.

Non-functional requirements
- No filesystem access; deterministic.
"""

from __future__ import annotations

import posixpath
import re
import tempfile
from collections.abc import Iterable
from typing import Final

from config_guard.constants import TEMP_DIR_PREFIXES
from config_guard.errors import SecurityError

_STREAM_WRAPPER_RE: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_WINDOWS_MOUNT_RE: Final[re.Pattern[str]] = re.compile(r"^/mnt/[a-zA-Z](?:/|$)")
_DRIVE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z]:[\\/]")


def is_stream_wrapper_path(path: str) -> bool:
    text = path.strip()
    if not text or "\0" in text:
        return False
    return _STREAM_WRAPPER_RE.match(text) is not None


def contains_traversal_segment(path: str) -> bool:
    return any(segment == ".." for segment in path.replace("\\", "/").split("/"))


def is_absolute_path(path: str) -> bool:
    """POSIX root, UNC/backslash root, or a drive-letter path."""

    if path.startswith("/") or path.startswith("\\"):
        return True
    return _DRIVE_RE.match(path) is not None


def assert_safe_path(path: str, *, label: str, require_absolute: bool = False) -> str:
    """Validate ``path`` lexically and return it stripped."""

    text = path.strip()
    if not text:
        raise SecurityError(f"{label} path is empty.", path=path)
    if "\0" in text:
        raise SecurityError(f"{label} path contains null byte.")
    if is_stream_wrapper_path(text):
        raise SecurityError(
            f"{label} path must be a local filesystem path "
            f"(stream wrappers are not allowed): {text}",
            path=text,
        )
    if contains_traversal_segment(text):
        raise SecurityError(
            f"{label} path must not contain traversal segments (..): {text}", path=text
        )
    if require_absolute and not is_absolute_path(text):
        raise SecurityError(f"{label} path must be absolute: {text}", path=text)
    return text


def ancestors(path: str) -> list[str]:
    """Return the ancestor directories of ``path``, nearest first, excluding ``/``."""

    result: list[str] = []
    current = posixpath.dirname(path.rstrip("/") or "/")
    while current not in {"", ".", "/"}:
        result.append(current)
        parent = posixpath.dirname(current)
        if parent == current:
            break
        current = parent
    return result


def is_likely_windows_mount_path(path: str) -> bool:
    """Heuristic for WSL-style drive mounts such as ``/mnt/c/...``."""

    return _WINDOWS_MOUNT_RE.match(path.replace("\\", "/")) is not None


def temp_dir_prefixes() -> tuple[str, ...]:
    prefixes = list(TEMP_DIR_PREFIXES)
    interpreter_tmp = tempfile.gettempdir().rstrip("/\\")
    if interpreter_tmp and interpreter_tmp not in prefixes:
        prefixes.append(interpreter_tmp)
    return tuple(prefixes)


def is_temp_path(path: str) -> bool:
    normalized = path.replace("\\", "/")
    return any(is_within(normalized, prefix.replace("\\", "/")) for prefix in temp_dir_prefixes())


def is_within(path: str, root: str) -> bool:
    """True when ``path`` equals ``root`` or lies underneath it (string comparison)."""

    candidate = path.rstrip("/\\") or "/"
    base = root.rstrip("/\\") or "/"
    if base == "/":
        return candidate.startswith("/")
    if candidate == base:
        return True
    return candidate.startswith(base + "/") or candidate.startswith(base + "\\")


def find_document_root(path: str, roots: Iterable[str]) -> str | None:
    """Return the first document root containing ``path``, if any."""

    for root in roots:
        if is_within(path, root):
            return root
    return None


__all__ = [
    "ancestors",
    "assert_safe_path",
    "contains_traversal_segment",
    "find_document_root",
    "is_absolute_path",
    "is_likely_windows_mount_path",
    "is_stream_wrapper_path",
    "is_temp_path",
    "is_within",
    "temp_dir_prefixes",
]
