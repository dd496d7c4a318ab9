"""Unit tests for the runtime context, path jail and document-root discovery."""

from __future__ import annotations

import os

import pytest

from config_guard.constants import ENV_DOCUMENT_ROOT, ENV_PATH_JAIL, ENV_PATH_JAIL_BOUNDARY
from config_guard.context import JailBoundary, PathJail, RuntimeContext, ensure_context
from config_guard.security.fakefs import FakeFilesystem
from config_guard.security.filesystem import OsFilesystem


def test_default_context_uses_os_filesystem_without_jail() -> None:
    ctx = RuntimeContext.default()

    assert isinstance(ctx.fs, OsFilesystem)
    assert ctx.path_jail is None
    assert ensure_context(None).path_jail is None
    assert ensure_context(ctx) is ctx


def test_from_prefixes_matches_whole_segments() -> None:
    jail = PathJail.from_prefixes(["/srv/app/", "  ", "/etc/config-guard"])

    assert jail.allows("/srv/app")
    assert jail.allows("/srv/app/releases/v1")
    assert jail.allows("/etc/config-guard/config.json")
    assert not jail.allows("/srv/application")
    assert not jail.allows("/srv")
    assert jail.description == os.pathsep.join(["/srv/app", "/etc/config-guard"])


def test_root_prefix_allows_everything() -> None:
    assert PathJail.from_prefixes(["/"]).allows("/anything/at/all")


def test_from_open_basedir_blank_means_no_jail() -> None:
    assert PathJail.from_open_basedir("") is None
    assert PathJail.from_open_basedir(f" {os.pathsep} ") is None


def test_from_environ_reads_jail_and_boundary() -> None:
    fs = FakeFilesystem()
    environ = {
        ENV_PATH_JAIL: os.pathsep.join(["/srv/app", "/etc/config-guard"]),
        ENV_PATH_JAIL_BOUNDARY: "WARN",
    }

    ctx = RuntimeContext.from_environ(environ, fs=fs)

    assert ctx.fs is fs
    assert ctx.path_jail is not None
    assert ctx.path_jail.boundary is JailBoundary.WARN
    assert ctx.path_jail.allows("/srv/app/config.json")
    assert not ctx.path_jail.allows("/home")


def test_from_environ_rejects_unknown_boundary() -> None:
    with pytest.raises(ValueError, match=ENV_PATH_JAIL_BOUNDARY):
        RuntimeContext.from_environ({ENV_PATH_JAIL_BOUNDARY: "ignore"})


def test_boundary_reached_is_silent_in_trust_mode() -> None:
    jail = PathJail.from_prefixes(["/srv"], boundary="trust")

    jail.boundary_reached("/", walk="parent_dirs")


def test_document_roots_from_environment_are_absolute_and_deduplicated() -> None:
    ctx = RuntimeContext(
        fs=FakeFilesystem(),
        environ={
            "DOCUMENT_ROOT": "/var/www/html/",
            "CONTEXT_DOCUMENT_ROOT": "/var/www/html",
            ENV_DOCUMENT_ROOT: os.pathsep.join(["relative/root", "/srv/public"]),
        },
    )

    assert ctx.detect_document_roots() == ("/var/www/html", "/srv/public")


def test_explicit_document_roots_override_environment() -> None:
    ctx = RuntimeContext(
        fs=FakeFilesystem(),
        document_roots=("C:\\inetpub\\wwwroot\\",),
        environ={"DOCUMENT_ROOT": "/var/www/html"},
    )

    assert ctx.detect_document_roots() == ("C:\\inetpub\\wwwroot",)


def test_explicit_empty_document_roots_disable_detection() -> None:
    ctx = RuntimeContext(
        fs=FakeFilesystem(), document_roots=(), environ={"DOCUMENT_ROOT": "/var/www"}
    )

    assert ctx.detect_document_roots() == ()
