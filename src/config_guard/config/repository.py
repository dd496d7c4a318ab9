"""
config-guard — validated runtime configuration repository

File: src/config_guard/config/repository.py
Last updated: 2026-10-17

Purpose
- Immutable dotted-key view over a decoded JSON config document that remembers the file it
  came from, so relative path values resolve against that file and never the working directory.

What should be included in this file
- ``ConfigRepository`` with ``from_mapping`` / ``from_json_file`` constructors.
- Typed accessors built on ``document.expect``.
- ``resolve_path`` and redacted/plain dumps.

Functional requirements
- ``from_json_file`` refuses relative, stream-wrapper, traversal, and NUL paths; enforces the
  file policy; refuses files inside a web document root; validates present sections eagerly.
- ``get`` never raises.

Non-functional requirements
- The decoded tree is frozen after construction.
- File contents are never logged.
"""

from __future__ import annotations

import json
import ntpath
import posixpath
import re
from collections.abc import Mapping
from typing import Any, Final

import structlog

from config_guard.config.document import JsonKind, expect, freeze, thaw
from config_guard.context import RuntimeContext, ensure_context
from config_guard.errors import ConfigLoadError, ConfigValidationError, SecurityError
from config_guard.security.path_rules import (
    assert_safe_path,
    find_document_root,
    is_absolute_path,
)
from config_guard.security.policy import FilePolicy
from config_guard.security.redaction import redact_structure
from config_guard.security.secure_file import assert_secure_readable_file

_DIGITS_RE: Final[re.Pattern[str]] = re.compile(r"^[0-9]+$")
_MISSING: Final[object] = object()

_logger = structlog.get_logger(__name__)


class ConfigRepository:
    """Read-only runtime configuration plus the absolute path it was loaded from."""

    __slots__ = ("_context", "_data", "_source_path")

    def __init__(
        self,
        data: Mapping[str, Any],
        *,
        source_path: str | None = None,
        ctx: RuntimeContext | None = None,
    ) -> None:
        if not isinstance(data, Mapping):
            raise ConfigValidationError("Config root must be a JSON object.")
        try:
            self._data: Mapping[str, Any] = freeze(data)  # type: ignore[assignment]
        except RecursionError as exc:
            raise ConfigValidationError("Config document is nested too deeply.") from exc
        self._source_path = source_path
        self._context = ensure_context(ctx)

    # -- construction ------------------------------------------------------

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], *, ctx: RuntimeContext | None = None
    ) -> ConfigRepository:
        """Wrap in-memory data; no source path and no validation."""

        return cls(data, ctx=ctx)

    from_array = from_mapping

    @classmethod
    def from_json_file(
        cls,
        path: str,
        policy: FilePolicy | None = None,
        *,
        ctx: RuntimeContext | None = None,
    ) -> ConfigRepository:
        from config_guard.config import validator

        ctx = ensure_context(ctx)
        policy = policy if policy is not None else FilePolicy.strict()
        path = assert_safe_path(path, label="Config file", require_absolute=True)

        assert_secure_readable_file(path, policy, ctx=ctx)
        assert_outside_document_root(path, ctx=ctx, label="Config file")

        try:
            raw = ctx.fs.read_bytes(path, limit=policy.max_bytes + 1)
        except OSError as exc:
            raise ConfigLoadError(f"Unable to read config file: {path}") from exc
        if len(raw) > policy.max_bytes:
            raise SecurityError(
                f"Config file too large (> {policy.max_bytes} B): {path}",
                path=path,
                policy=policy.name,
            )

        try:
            decoded = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
            raise ConfigLoadError(f"Invalid JSON config file: {path}") from exc
        if not isinstance(decoded, dict):
            raise ConfigLoadError(f"Config JSON must decode to an object: {path}")

        repo = cls(decoded, source_path=path, ctx=ctx)
        validator.assert_trust_kernel_web3_config(repo)
        for section, check in (
            ("http", validator.assert_http_config),
            ("db", validator.assert_db_config),
            ("crypto", validator.assert_crypto_config),
            ("observability", validator.assert_observability_config),
        ):
            if repo.has(section):
                check(repo)

        _logger.info("config_loaded", source_path=path, policy=policy.name)
        return repo

    # -- properties --------------------------------------------------------

    @property
    def source_path(self) -> str | None:
        return self._source_path

    @property
    def context(self) -> RuntimeContext:
        return self._context

    # -- lookup ------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Dot-notation lookup (e.g. ``"db.dsn"``); returns ``default`` when absent."""

        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        return self._lookup(key) is not _MISSING

    def _lookup(self, key: str) -> Any:
        if not isinstance(key, str) or key == "":
            return _MISSING
        current: Any = self._data
        for segment in key.split("."):
            if segment == "":
                return _MISSING
            if not isinstance(current, Mapping) or segment not in current:
                return _MISSING
            current = current[segment]
        return current

    def _typed(self, key: str, kind: JsonKind, default: Any) -> Any:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        return expect(value, kind, key=key)

    def get_string(self, key: str, default: str | None = None) -> str | None:
        return self._typed(key, JsonKind.STRING, default)

    def get_int(self, key: str, default: int | None = None) -> int | None:
        return self._typed(key, JsonKind.INTEGER, default)

    def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        return self._typed(key, JsonKind.BOOLEAN, default)

    def get_object(
        self, key: str, default: Mapping[str, Any] | None = None
    ) -> Mapping[str, Any] | None:
        return self._typed(key, JsonKind.OBJECT, default)

    def get_list(self, key: str, default: tuple[Any, ...] | None = None) -> tuple[Any, ...] | None:
        return self._typed(key, JsonKind.ARRAY, default)

    def require_string(self, key: str) -> str:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            raise ConfigValidationError(f"Missing required config string: {key}", key=key)
        text = expect(value, JsonKind.STRING, key=key)
        if text == "":
            raise ConfigValidationError(f"Missing required config string: {key}", key=key)
        return text

    def require_int(self, key: str) -> int:
        value = self._lookup(key)
        if value is _MISSING or value is None:
            raise ConfigValidationError(f"Missing required config int: {key}", key=key)
        if isinstance(value, str) and _DIGITS_RE.match(value.strip()):
            return int(value.strip())
        return expect(value, JsonKind.INTEGER, key=key)

    # -- paths -------------------------------------------------------------

    def resolve_path(self, value: str) -> str:
        """Resolve a config path value against the directory of ``source_path``."""

        if not isinstance(value, str):
            raise ConfigValidationError("Config path value must be a string.")
        text = assert_safe_path(value, label="Config path value")
        if is_absolute_path(text):
            return text
        if self._source_path is None:
            raise ConfigValidationError(
                f"Cannot resolve relative path without a config source file: {text}"
            )
        pathmod = _path_module_for(self._source_path)
        return pathmod.join(pathmod.dirname(self._source_path), text)

    # -- dumps -------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return thaw(self._data)  # type: ignore[return-value]

    to_array = to_dict

    def redacted(self) -> dict[str, Any]:
        return redact_structure(self._data)  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"ConfigRepository(source_path={self._source_path!r}, keys={sorted(self._data)!r})"


def _path_module_for(source_path: str) -> Any:
    if "\\" in source_path and "/" not in source_path:
        return ntpath
    return posixpath


def assert_outside_document_root(
    path: str, *, ctx: RuntimeContext | None = None, label: str = "Config file"
) -> None:
    """Reject ``path`` when it (or its symlink-resolved form) lies under a document root."""

    ctx = ensure_context(ctx)
    roots = ctx.detect_document_roots()
    if not roots:
        return
    resolved_roots: list[str] = []
    for root in roots:
        resolved_roots.append(root)
        try:
            real_root = ctx.fs.realpath(root)
        except OSError:
            continue
        if real_root not in resolved_roots:
            resolved_roots.append(real_root)

    candidates = [path]
    try:
        real = ctx.fs.realpath(path)
    except OSError:
        real = path
    if real != path:
        candidates.append(real)

    for candidate in candidates:
        root = find_document_root(candidate, resolved_roots)
        if root is not None:
            raise SecurityError(
                f"{label} must not be inside the web document root ({root}): {candidate}",
                path=candidate,
            )


__all__ = ["ConfigRepository", "assert_outside_document_root"]
