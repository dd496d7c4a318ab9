"""Unit tests for the init-once config holder."""

from __future__ import annotations

import json

import pytest

from config_guard.config.holder import ConfigHolder
from config_guard.config.repository import ConfigRepository
from config_guard.context import RuntimeContext
from config_guard.errors import BootstrapError, ConfigHolderError
from config_guard.security.fakefs import FakeFilesystem


def _ctx() -> RuntimeContext:
    fs = FakeFilesystem(euid=1000)
    fs.add_dir("/home/app", mode=0o700, uid=1000)
    fs.add_file(
        "/home/app/config.json",
        json.dumps({"db": {"dsn": "mysql:host=db"}}),
        mode=0o600,
        uid=1000,
    )
    return RuntimeContext(fs=fs, environ={})


def test_access_before_init_fails() -> None:
    holder = ConfigHolder()

    assert not holder.is_initialized
    with pytest.raises(ConfigHolderError, match="Config is not initialized."):
        holder.repo()
    with pytest.raises(ConfigHolderError):
        holder.get("db.dsn")


def test_init_is_once_only() -> None:
    holder = ConfigHolder()
    first = ConfigRepository.from_mapping({"a": 1})

    holder.init(first)

    assert holder.is_initialized
    assert holder.repo() is first
    with pytest.raises(ConfigHolderError, match="Config already initialized."):
        holder.init(ConfigRepository.from_mapping({"a": 2}))
    holder.init_if_needed(ConfigRepository.from_mapping({"a": 3}))
    assert holder.get("a") == 1


def test_init_from_json_file_and_delegates() -> None:
    holder = ConfigHolder()

    holder.init_from_json_file("/home/app/config.json", ctx=_ctx())

    assert holder.require_string("db.dsn") == "mysql:host=db"
    assert holder.get("db.missing", "x") == "x"
    with pytest.raises(ConfigHolderError):
        holder.init_from_json_file("/home/app/config.json", ctx=_ctx())


def test_init_from_first_available() -> None:
    holder = ConfigHolder()

    holder.init_from_first_available(["/home/app/absent.json", "/home/app/config.json"], ctx=_ctx())

    assert holder.repo().source_path == "/home/app/config.json"
    with pytest.raises(ConfigHolderError):
        holder.init_from_first_available(["/home/app/config.json"], ctx=_ctx())


def test_init_from_first_available_propagates_bootstrap_failure() -> None:
    holder = ConfigHolder()

    with pytest.raises(BootstrapError):
        holder.init_from_first_available(["/home/app/absent.json"], ctx=_ctx())
    assert not holder.is_initialized


def test_try_init_from_first_available() -> None:
    holder = ConfigHolder()

    assert holder.try_init_from_first_available(["/home/app/absent.json"], ctx=_ctx()) is False
    assert holder.try_init_from_first_available(["/home/app/config.json"], ctx=_ctx()) is True
    assert holder.try_init_from_first_available(["/home/app/absent.json"], ctx=_ctx()) is True
