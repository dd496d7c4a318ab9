"""
config-guard — secure config file checks

File: src/config_guard/security/secure_file.py
Last updated: 2026-10-17

Purpose
- Decide whether a file is safe to trust as a source of security-relevant configuration.

Functional requirements
- Checks run in a fixed order and the first violation wins:
  1. lexical path rules (empty, NUL, stream wrapper, traversal)
  2. existence and symlink rejection
  3. regular file, readable
  4. size cap
  5. no symlinked ancestor components (jail-aware)
  6. permission bits
  7. ownership (root or euid)
  8. ancestor writability (sticky exception, jail-aware)
- Non-POSIX platforms skip steps 6-8.

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
from config_guard.security.policy import FilePolicy

_LABEL = "Config file"


def assert_secure_readable_file(
    path: str,
    policy: FilePolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> None:
    """Raise ``SecurityError`` unless ``path`` satisfies ``policy`` (default strict)."""

    policy = policy if policy is not None else FilePolicy.strict()
    ctx = ensure_context(ctx)
    fs = ctx.fs

    path = assert_safe_path(path, label=_LABEL)

    if not fs.exists(path):
        raise SecurityError(f"{_LABEL} not found: {path}", path=path, policy=policy.name)
    if not policy.allow_symlinks and fs.is_symlink(path):
        raise SecurityError(
            f"{_LABEL} must not be a symlink: {path}", path=path, policy=policy.name
        )

    info = stat_or_fail(ctx, path, label=_LABEL)
    if not info.is_file:
        raise SecurityError(
            f"Config path is not a file: {path}",
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
    if info.size > policy.max_bytes:
        raise SecurityError(
            f"{_LABEL} too large ({info.size} B > {policy.max_bytes} B): {path}",
            path=path,
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
    )
    if policy.enforce_owner:
        assert_owned_by_root_or_current_user(
            ctx, path, info, label=_LABEL, policy=policy.name
        )
    assert_parent_permissions(
        ctx, path, check_parent_dirs=policy.check_parent_dirs, policy=policy.name
    )


def is_secure_readable_file(
    path: str,
    policy: FilePolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> bool:
    try:
        assert_secure_readable_file(path, policy, ctx=ctx)
    except SecurityError:
        return False
    return True


__all__ = ["assert_secure_readable_file", "is_secure_readable_file"]
