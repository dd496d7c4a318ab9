"""
config-guard — unit tests for secure file checks

File: tests/unit/security/test_secure_file.py
Last updated: 2026-10-17

Purpose
- Verify the ordered fail-closed checks applied before any config file is read.

What this test file should cover
- Existence, symlink, type, readability, size, mode bits, ownership, parent dirs.
- Sticky-bit exception, symlinked parents, path-jail boundary handling.
- Non-POSIX platforms skip mode, owner and parent checks.

Functional requirements
- Offline only; ownership scenarios use the in-memory filesystem.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from config_guard.context import JailBoundary, PathJail, RuntimeContext
from config_guard.errors import SecurityError
from config_guard.security.fakefs import FakeFilesystem
from config_guard.security.policy import FilePolicy
from config_guard.security.secure_file import (
    assert_secure_readable_file,
    is_secure_readable_file,
)

if TYPE_CHECKING:
    from pathlib import Path

try:
    from hypothesis import given
    from hypothesis import strategies as st
except ModuleNotFoundError:
    HYPOTHESIS_AVAILABLE = False
else:
    HYPOTHESIS_AVAILABLE = True

CONFIG = "/etc/config-guard/config.json"


def _fs(*, euid: int | None = 1000, posix: bool = True) -> FakeFilesystem:
    fs = FakeFilesystem(euid=euid, posix=posix)
    fs.add_dir("/etc/config-guard", mode=0o750, uid=0)
    return fs


def _ctx(fs: FakeFilesystem, jail: PathJail | None = None) -> RuntimeContext:
    return RuntimeContext(fs=fs, path_jail=jail, environ={})


def test_owner_only_file_passes_strict_policy() -> None:
    fs = _fs()
    fs.add_file(CONFIG, b"{}", mode=0o600, uid=1000)

    assert_secure_readable_file(CONFIG, ctx=_ctx(fs))
    assert is_secure_readable_file(CONFIG, ctx=_ctx(fs))


def test_root_owned_file_passes_strict_policy() -> None:
    fs = _fs(euid=0)
    fs.add_file(CONFIG, b"{}", mode=0o600, uid=0)

    assert_secure_readable_file(CONFIG, FilePolicy.strict(), ctx=_ctx(fs))


def test_missing_file_is_reported() -> None:
    with pytest.raises(SecurityError, match="Config file not found"):
        assert_secure_readable_file(CONFIG, ctx=_ctx(_fs()))


def test_symlink_is_rejected_even_when_target_is_secure() -> None:
    fs = _fs()
    fs.add_file("/etc/config-guard/real.json", b"{}", mode=0o600, uid=1000)
    fs.add_symlink(CONFIG, "/etc/config-guard/real.json", uid=1000)

    with pytest.raises(SecurityError, match="must not be a symlink"):
        assert_secure_readable_file(CONFIG, ctx=_ctx(fs))


def test_symlink_allowed_by_policy_is_followed() -> None:
    fs = _fs()
    fs.add_file("/etc/config-guard/real.json", b"{}", mode=0o600, uid=1000)
    fs.add_symlink(CONFIG, "/etc/config-guard/real.json", uid=1000)

    assert_secure_readable_file(
        CONFIG, FilePolicy.strict().with_changes(allow_symlinks=True), ctx=_ctx(fs)
    )


def test_directory_is_not_a_file() -> None:
    fs = _fs()
    fs.add_dir(CONFIG, mode=0o700, uid=1000)

    with pytest.raises(SecurityError, match="Config path is not a file"):
        assert_secure_readable_file(CONFIG, ctx=_ctx(fs))


def test_unreadable_file_is_rejected() -> None:
    fs = _fs()
    fs.add_file(CONFIG, b"{}", mode=0o200, uid=1000)

    with pytest.raises(SecurityError, match="not readable"):
        assert_secure_readable_file(CONFIG, ctx=_ctx(fs))


def test_file_larger_than_cap_is_rejected() -> None:
    fs = _fs()
    fs.add_file(CONFIG, b"x" * 11, mode=0o600, uid=1000)

    with pytest.raises(SecurityError, match=r"too large \(11 B > 10 B\)"):
        assert_secure_readable_file(CONFIG, FilePolicy(max_bytes=10), ctx=_ctx(fs))


@pytest.mark.parametrize(
    ("mode", "what"),
    [
        (0o602, "world-writable"),
        (0o620, "group-writable"),
        (0o604, "world-readable"),
    ],
)
def test_mode_bits_are_enforced(mode: int, what: str) -> None:
    fs = _fs()
    fs.add_file(CONFIG, b"{}", mode=mode, uid=1000)

    with pytest.raises(SecurityError, match=what) as excinfo:
        assert_secure_readable_file(CONFIG, ctx=_ctx(fs))

    assert excinfo.value.mode == mode
    assert excinfo.value.mode_octal == format(mode, "o")
    assert excinfo.value.policy == "strict"


def test_world_readable_allowed_by_public_policy() -> None:
    fs = _fs()
    fs.add_file(CONFIG, b"{}", mode=0o644, uid=4242)

    assert_secure_readable_file(CONFIG, FilePolicy.public_readable(), ctx=_ctx(fs))


def test_foreign_owner_is_rejected() -> None:
    fs = _fs()
    fs.add_file(CONFIG, b"{}", mode=0o604, uid=2000)

    with pytest.raises(SecurityError, match=r"owned by root or uid 1000 \(got uid 2000\)"):
        assert_secure_readable_file(
            CONFIG, FilePolicy(allow_world_readable=True), ctx=_ctx(fs)
        )


def test_unknown_euid_skips_owner_check() -> None:
    fs = _fs(euid=None)
    fs.add_file(CONFIG, b"{}", mode=0o604, uid=2000)

    assert_secure_readable_file(CONFIG, FilePolicy(allow_world_readable=True), ctx=_ctx(fs))


def test_world_writable_parent_is_rejected() -> None:
    fs = _fs()
    fs.add_dir("/srv/shared", mode=0o777, uid=0)
    fs.add_file("/srv/shared/config.json", b"{}", mode=0o600, uid=1000)

    with pytest.raises(SecurityError, match="Config directory must not be world-writable"):
        assert_secure_readable_file("/srv/shared/config.json", ctx=_ctx(fs))


def test_group_writable_grandparent_is_rejected_when_walking_parents() -> None:
    fs = _fs()
    fs.add_dir("/srv", mode=0o775, uid=0)
    fs.add_dir("/srv/app", mode=0o700, uid=1000)
    fs.add_file("/srv/app/config.json", b"{}", mode=0o600, uid=1000)
    ctx = _ctx(fs)

    with pytest.raises(SecurityError, match=r"group-writable \(775\): /srv"):
        assert_secure_readable_file("/srv/app/config.json", ctx=ctx)

    assert_secure_readable_file(
        "/srv/app/config.json",
        FilePolicy.strict().with_changes(check_parent_dirs=False),
        ctx=ctx,
    )


def test_sticky_world_writable_parent_is_accepted() -> None:
    fs = _fs()
    fs.add_dir("/tmp", mode=0o1777, uid=0)
    fs.add_dir("/tmp/app", mode=0o700, uid=1000)
    fs.add_file("/tmp/app/config.json", b"{}", mode=0o600, uid=1000)

    assert_secure_readable_file("/tmp/app/config.json", ctx=_ctx(fs))


def test_symlinked_parent_directory_is_rejected() -> None:
    fs = _fs()
    fs.add_dir("/opt/releases/v1", mode=0o700, uid=1000)
    fs.add_file("/opt/releases/v1/config.json", b"{}", mode=0o600, uid=1000)
    fs.add_symlink("/opt/current", "/opt/releases/v1")

    with pytest.raises(SecurityError, match="symlink path components: /opt/current"):
        assert_secure_readable_file("/opt/current/config.json", ctx=_ctx(fs))


def test_jail_stops_parent_walk_at_boundary() -> None:
    fs = _fs()
    fs.add_dir("/shared", mode=0o777, uid=0)
    fs.add_dir("/shared/app", mode=0o700, uid=1000)
    fs.add_file("/shared/app/config.json", b"{}", mode=0o600, uid=1000)
    jail = PathJail.from_prefixes(["/shared/app"], boundary=JailBoundary.WARN)

    assert_secure_readable_file("/shared/app/config.json", ctx=_ctx(fs, jail))

    with pytest.raises(SecurityError, match="world-writable"):
        assert_secure_readable_file("/shared/app/config.json", ctx=_ctx(fs))


def test_symlink_outside_jail_is_not_inspected() -> None:
    fs = _fs()
    fs.add_dir("/real/app", mode=0o700, uid=1000)
    fs.add_file("/real/app/config.json", b"{}", mode=0o600, uid=1000)
    fs.add_symlink("/link", "/real")
    jail = PathJail.from_prefixes(["/link/app"])

    assert_secure_readable_file("/link/app/config.json", ctx=_ctx(fs, jail))


def test_non_posix_skips_mode_owner_and_parent_checks() -> None:
    fs = _fs(posix=False)
    fs.add_dir("/shared", mode=0o777, uid=0)
    fs.add_file("/shared/config.json", b"{}", mode=0o666, uid=2000)

    assert_secure_readable_file("/shared/config.json", ctx=_ctx(fs))


def test_lexical_rejection_happens_before_filesystem_access() -> None:
    with pytest.raises(SecurityError, match="stream wrappers"):
        assert_secure_readable_file("phar://archive/config.json", ctx=_ctx(_fs()))


@pytest.mark.skipif(os.name != "posix", reason="POSIX permission semantics")
def test_real_filesystem_owner_only_file(tmp_path: Path) -> None:
    directory = tmp_path / "cfg"
    directory.mkdir(mode=0o700)
    os.chmod(directory, 0o700)
    target = directory / "config.json"
    target.write_text("{}", encoding="utf-8")
    os.chmod(target, 0o600)

    assert is_secure_readable_file(str(target))

    os.chmod(target, 0o644)
    assert not is_secure_readable_file(str(target))


if HYPOTHESIS_AVAILABLE:

    @given(mode=st.integers(min_value=0, max_value=0o777))
    def test_strict_policy_accepts_only_owner_bits(mode: int) -> None:
        fs = _fs()
        fs.add_file(CONFIG, b"{}", mode=mode, uid=1000)

        accepted = is_secure_readable_file(CONFIG, ctx=_ctx(fs))

        expected = bool(mode & 0o400) and not (mode & 0o026)
        assert accepted is expected
