"""
config-guard — unit tests for lexical path rules

File: tests/unit/security/test_path_rules.py
Last updated: 2026-10-17

Purpose
- Verify the pure string checks that run before any filesystem access.

What this test file should cover
- Empty, null-byte, stream-wrapper, traversal and relative path rejection.
- Ancestor enumeration, temp/Windows-mount heuristics, document-root containment.

Functional requirements
- Offline only; no filesystem access.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

import pytest

from config_guard.errors import SecurityError
from config_guard.security.path_rules import (
    ancestors,
    assert_safe_path,
    contains_traversal_segment,
    find_document_root,
    is_absolute_path,
    is_likely_windows_mount_path,
    is_stream_wrapper_path,
    is_temp_path,
    is_within,
)

try:
    from hypothesis import given
    from hypothesis import strategies as st
except ModuleNotFoundError:
    HYPOTHESIS_AVAILABLE = False
else:
    HYPOTHESIS_AVAILABLE = True


@pytest.mark.parametrize(
    ("raw", "fragment"),
    [
        ("", "path is empty"),
        ("   ", "path is empty"),
        ("/etc/app\0.json", "null byte"),
        ("php://filter/resource=/etc/passwd", "stream wrappers are not allowed"),
        ("file:///etc/app.json", "stream wrappers are not allowed"),
        ("/etc/app/../shadow", "traversal segments"),
        ("C:\\app\\..\\secrets", "traversal segments"),
    ],
)
def test_assert_safe_path_rejects_unsafe_input(raw: str, fragment: str) -> None:
    with pytest.raises(SecurityError, match=fragment):
        assert_safe_path(raw, label="Config file")


def test_assert_safe_path_requires_absolute_when_asked() -> None:
    assert assert_safe_path("conf/app.json", label="Config file") == "conf/app.json"

    with pytest.raises(SecurityError, match="must be absolute"):
        assert_safe_path("conf/app.json", label="Config file", require_absolute=True)


def test_assert_safe_path_returns_stripped_path() -> None:
    assert assert_safe_path("  /etc/app.json \n", label="Config file") == "/etc/app.json"


def test_dotted_names_are_not_traversal() -> None:
    assert not contains_traversal_segment("/etc/..hidden/file")
    assert not contains_traversal_segment("/etc/app.../file")
    assert contains_traversal_segment("..")


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/etc/app.json", True),
        ("\\\\server\\share\\app.json", True),
        ("C:\\ProgramData\\App\\config.json", True),
        ("c:/ProgramData/App/config.json", True),
        ("relative/app.json", False),
        ("C:relative", False),
    ],
)
def test_is_absolute_path(path: str, expected: bool) -> None:
    assert is_absolute_path(path) is expected


def test_stream_wrapper_detection_requires_scheme_prefix() -> None:
    assert is_stream_wrapper_path("s3://bucket/key")
    assert not is_stream_wrapper_path("/etc/s3://not-a-scheme")
    assert not is_stream_wrapper_path("C:\\ProgramData")


def test_ancestors_are_nearest_first_and_exclude_root() -> None:
    assert ancestors("/etc/config-guard/config.json") == ["/etc/config-guard", "/etc"]
    assert ancestors("/etc") == []
    assert ancestors("/") == []


def test_windows_mount_and_temp_heuristics() -> None:
    assert is_likely_windows_mount_path("/mnt/c/Users/app/config.json")
    assert is_likely_windows_mount_path("/mnt/D")
    assert not is_likely_windows_mount_path("/mnt/data/config.json")

    assert is_temp_path("/tmp/app/config.json")
    assert is_temp_path("/dev/shm/app")
    assert not is_temp_path("/tmpfs/app")
    assert not is_temp_path("/etc/config-guard/config.json")


def test_is_within_compares_whole_segments() -> None:
    assert is_within("/var/www/html/config.json", "/var/www/html")
    assert is_within("/var/www/html", "/var/www/html/")
    assert not is_within("/var/www/html2/config.json", "/var/www/html")
    assert is_within("/anything", "/")


def test_find_document_root_returns_first_match() -> None:
    roots = ["/srv/public", "/var/www"]

    assert find_document_root("/var/www/site/config.json", roots) == "/var/www"
    assert find_document_root("/etc/config.json", roots) is None


if HYPOTHESIS_AVAILABLE:
    _SEGMENT = st.text(alphabet="abcdefghij.-_", min_size=1, max_size=6)

    @given(prefix=st.lists(_SEGMENT, max_size=4), suffix=st.lists(_SEGMENT, max_size=4))
    def test_any_dotdot_segment_is_rejected(prefix: list[str], suffix: list[str]) -> None:
        raw = "/" + "/".join([*prefix, "..", *suffix])

        with pytest.raises(SecurityError):
            assert_safe_path(raw, label="Config file")

    @given(segments=st.lists(_SEGMENT.filter(lambda part: part not in {".", ".."}), min_size=1, max_size=5))
    def test_ancestors_are_all_prefixes_of_the_path(segments: list[str]) -> None:
        path = "/" + "/".join(segments)

        chain = ancestors(path)

        assert len(chain) == len(segments) - 1
        for parent in chain:
            assert path.startswith(parent + "/")
