"""
config-guard — shared permission primitives

File: src/config_guard/security/permissions.py
Last updated: 2026-10-17

Purpose
- Ownership, permission-bit, and ancestor-walk checks shared by ``secure_file`` and
  ``secure_dir`` (and reused by the installer's pre-write directory checks).

Functional requirements
- Ancestor writability: group/world-writable directories are rejected unless sticky.
- Walks consult the context path jail; components outside it are not inspected.
- Ownership: uid 0 or the effective uid; skipped when the euid is unavailable.

Non-functional requirements
- Fail fast on the first violation; modes are reported in octal.
"""

from __future__ import annotations

import posixpath

from config_guard.context import RuntimeContext
from config_guard.errors import SecurityError
from config_guard.security.filesystem import StatInfo
from config_guard.security.path_rules import ancestors, contains_traversal_segment


def stat_or_fail(ctx: RuntimeContext, path: str, *, label: str, follow: bool = True) -> StatInfo:
    try:
        return ctx.fs.stat(path) if follow else ctx.fs.lstat(path)
    except OSError as exc:
        raise SecurityError(
            f"Unable to read {label.lower()} metadata: {path}", path=path
        ) from exc


def assert_owned_by_root_or_current_user(
    ctx: RuntimeContext,
    path: str,
    info: StatInfo,
    *,
    label: str,
    policy: str | None = None,
) -> None:
    euid = ctx.fs.effective_uid()
    if euid is None or euid < 0:
        return
    if info.uid not in {0, euid}:
        raise SecurityError(
            f"{label} must be owned by root or uid {euid} (got uid {info.uid}): {path}",
            path=path,
            mode=info.permissions,
            policy=policy,
        )


def assert_mode_bits(
    path: str,
    info: StatInfo,
    *,
    label: str,
    policy: str | None,
    allow_world_writable: bool,
    allow_group_writable: bool,
    allow_world_readable: bool,
    allow_world_executable: bool = True,
) -> None:
    mode = info.permissions
    violations = (
        (not allow_world_writable and bool(mode & 0o002), "world-writable"),
        (not allow_group_writable and bool(mode & 0o020), "group-writable"),
        (not allow_world_readable and bool(mode & 0o004), "world-readable"),
        (not allow_world_executable and bool(mode & 0o001), "world-executable"),
    )
    for violated, what in violations:
        if violated:
            raise SecurityError(
                f"{label} must not be {what} ({mode:o}): {path}",
                path=path,
                mode=mode,
                policy=policy,
            )


def assert_dir_not_writable(
    ctx: RuntimeContext, directory: str, *, policy: str | None = None
) -> None:
    """Reject a group/world-writable directory unless it carries the sticky bit."""

    info = stat_or_fail(ctx, directory, label="Directory")
    if info.sticky:
        return
    mode = info.permissions
    if mode & 0o002:
        raise SecurityError(
            f"Config directory must not be world-writable ({mode:o}): {directory}",
            path=directory,
            mode=mode,
            policy=policy,
        )
    if mode & 0o020:
        raise SecurityError(
            f"Config directory must not be group-writable ({mode:o}): {directory}",
            path=directory,
            mode=mode,
            policy=policy,
        )


def assert_parent_dirs_not_writable(
    ctx: RuntimeContext, start_dir: str, *, policy: str | None = None
) -> None:
    """Walk from ``start_dir`` up to (excluding) ``/``; stop at the jail boundary."""

    jail = ctx.path_jail
    directory = start_dir.rstrip("/") or "/"
    walk = [directory, *ancestors(directory)] if directory != "/" else []
    for current in walk:
        if jail is not None and not jail.allows(current):
            jail.boundary_reached(current, walk="parent_dirs")
            break
        assert_dir_not_writable(ctx, current, policy=policy)


def assert_parent_permissions(
    ctx: RuntimeContext,
    path: str,
    *,
    check_parent_dirs: bool,
    policy: str | None = None,
) -> None:
    directory = posixpath.dirname(path.rstrip("/"))
    if directory in {"", ".", "/"}:
        return
    if check_parent_dirs:
        assert_parent_dirs_not_writable(ctx, directory, policy=policy)
        return
    assert_dir_not_writable(ctx, directory, policy=policy)


def assert_no_symlink_parents(
    ctx: RuntimeContext, directory: str, *, label: str = "Config directory"
) -> None:
    """Walk ``directory`` from the root down and reject any symlinked component."""

    if not ctx.fs.is_posix:
        return
    trimmed = directory.strip().rstrip("/")
    if trimmed in {"", "."}:
        return
    if contains_traversal_segment(trimmed):
        raise SecurityError(
            f"{label} path must not contain traversal segments (..): {trimmed}", path=trimmed
        )

    jail = ctx.path_jail
    prefix = "/" if trimmed.startswith("/") else ""
    current = prefix
    outside_reported = False
    for part in (segment for segment in trimmed.split("/") if segment):
        current = f"{current}{part}" if current in {"", "/"} else f"{current}/{part}"
        if jail is not None and not jail.allows(current):
            if not outside_reported:
                jail.boundary_reached(current, walk="symlink_parents")
                outside_reported = True
            continue
        if ctx.fs.is_symlink(current):
            raise SecurityError(
                f"{label} must not contain symlink path components: {current}",
                path=current,
            )


__all__ = [
    "assert_dir_not_writable",
    "assert_mode_bits",
    "assert_no_symlink_parents",
    "assert_owned_by_root_or_current_user",
    "assert_parent_dirs_not_writable",
    "assert_parent_permissions",
    "stat_or_fail",
]
