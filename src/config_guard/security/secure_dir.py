"""
config-guard — secure directory checks

File: src/config_guard/security/secure_dir.py
Last updated: 2026-10-17

Purpose
- Directory counterpart of ``secure_file``: key directories, integrity roots, outboxes.

Functional requirements
- Same lexical, existence, symlink, ownership, and ancestor checks as files.
- Adds the world-executable bit; no size cap.

Non-functional requirements
- Read-only inspection; raises ``SecurityError`` only.
"""

from __future__ import annotations

import posixpath

from config_guard.context import RuntimeContext, ensure_context
from config_guard.errors import SecurityError
from config_guard.security.path_rules import assert_safe_path
from config_guard.security.permissions import (
    assert_mode_bits,
    assert_no_symlink_parents,
    assert_owned_by_root_or_current_user,
    assert_parent_permissions,
    stat_or_fail,
)
from config_guard.security.policy import DirPolicy

_LABEL = "Config directory"


def assert_secure_readable_dir(
    path: str,
    policy: DirPolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> None:
    """Raise ``SecurityError`` unless ``path`` satisfies ``policy`` (default secrets_dir)."""

    policy = policy if policy is not None else DirPolicy.secrets_dir()
    ctx = ensure_context(ctx)
    fs = ctx.fs

    path = assert_safe_path(path, label=_LABEL)
    if len(path) > 1:
        path = path.rstrip("/")

    if not fs.exists(path):
        raise SecurityError(f"{_LABEL} not found: {path}", path=path, policy=policy.name)
    if not policy.allow_symlinks and fs.is_symlink(path):
        raise SecurityError(
            f"{_LABEL} must not be a symlink: {path}", path=path, policy=policy.name
        )

    info = stat_or_fail(ctx, path, label=_LABEL)
    if not info.is_dir:
        raise SecurityError(
            f"Config path is not a directory: {path}",
            path=path,
            mode=info.permissions,
            policy=policy.name,
        )
    if not fs.readable(path):
        raise SecurityError(
            f"{_LABEL} is not readable: {path}",
            path=path,
            mode=info.permissions,
            policy=policy.name,
        )

    if not policy.allow_symlinks:
        assert_no_symlink_parents(ctx, posixpath.dirname(path))

    if not fs.is_posix:
        return

    assert_mode_bits(
        path,
        info,
        label=_LABEL,
        policy=policy.name,
        allow_world_writable=policy.allow_world_writable,
        allow_group_writable=policy.allow_group_writable,
        allow_world_readable=policy.allow_world_readable,
        allow_world_executable=policy.allow_world_executable,
    )
    if policy.enforce_owner:
        assert_owned_by_root_or_current_user(
            ctx, path, info, label=_LABEL, policy=policy.name
        )
    assert_parent_permissions(
        ctx, path, check_parent_dirs=policy.check_parent_dirs, policy=policy.name
    )


def is_secure_readable_dir(
    path: str,
    policy: DirPolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> bool:
    try:
        assert_secure_readable_dir(path, policy, ctx=ctx)
    except SecurityError:
        return False
    return True


__all__ = ["assert_secure_readable_dir", "is_secure_readable_dir"]
