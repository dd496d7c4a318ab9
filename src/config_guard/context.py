"""
config-guard — runtime context (filesystem, path jail, document roots)

File: src/config_guard/context.py
Last updated: 2026-10-17

Purpose
- Bundle the injectable collaborators every public operation needs so no code path
  reaches for ambient process state directly.

What should be included in this file
- ``JailBoundary`` and ``PathJail`` (optional path-accessibility predicate).
- ``RuntimeContext`` with ``default()`` / ``from_environ()`` constructors.
- ``ensure_context`` helper used by every ``ctx=None`` entry point.

Functional requirements
- A path is inside a prefix jail when it equals a prefix, is under ``prefix + "/"``,
  or the prefix is ``/``.
- Document roots come from ``ctx.document_roots`` when set, otherwise from the
  environment (``DOCUMENT_ROOT``, ``CONTEXT_DOCUMENT_ROOT``, ``CONFIG_GUARD_DOCUMENT_ROOT``).

Non-functional requirements
- Immutable; safe to share across calls.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from config_guard.constants import (
    DOCUMENT_ROOT_ENV_KEYS,
    ENV_DOCUMENT_ROOT,
    ENV_PATH_JAIL,
    ENV_PATH_JAIL_BOUNDARY,
)
from config_guard.security.filesystem import Filesystem, OsFilesystem

_logger = structlog.get_logger(__name__)


class JailBoundary(StrEnum):
    """What an ancestor walk does when it reaches a path outside the jail."""

    TRUST = "trust"
    WARN = "warn"


def _normalize_prefix(raw: str) -> str:
    text = raw.strip()
    if text in {"", "/"}:
        return text
    return text.rstrip("/\\")


@dataclass(frozen=True, slots=True)
class PathJail:
    """Optional accessibility predicate mirroring an interpreter path jail."""

    is_accessible: Callable[[str], bool]
    boundary: JailBoundary = JailBoundary.TRUST
    description: str = ""

    @classmethod
    def from_prefixes(
        cls,
        prefixes: Iterable[str],
        *,
        boundary: JailBoundary | str = JailBoundary.TRUST,
    ) -> PathJail:
        cleaned = tuple(
            prefix for prefix in (_normalize_prefix(item) for item in prefixes) if prefix
        )

        def _inside(path: str) -> bool:
            candidate = path.rstrip("/\\") or "/"
            for prefix in cleaned:
                if prefix == "/":
                    return True
                if candidate == prefix:
                    return True
                if candidate.startswith(prefix + "/") or candidate.startswith(prefix + "\\"):
                    return True
            return False

        return cls(
            is_accessible=_inside,
            boundary=JailBoundary(boundary),
            description=os.pathsep.join(cleaned),
        )

    @classmethod
    def from_open_basedir(
        cls,
        raw: str,
        *,
        boundary: JailBoundary | str = JailBoundary.TRUST,
    ) -> PathJail | None:
        """Parse an ``os.pathsep`` separated prefix list; blank input means no jail."""

        parts = [part for part in raw.split(os.pathsep) if part.strip()]
        if not parts:
            return None
        return cls.from_prefixes(parts, boundary=boundary)

    def allows(self, path: str) -> bool:
        return bool(self.is_accessible(path))

    def boundary_reached(self, path: str, *, walk: str) -> None:
        """Record that an ancestor walk stopped at ``path``."""

        if self.boundary is JailBoundary.WARN:
            _logger.warning(
                "path_jail_boundary_reached",
                path=path,
                walk=walk,
                jail=self.description,
            )


@dataclass(frozen=True, slots=True)
class RuntimeContext:
    """Collaborators consulted by policy checks, discovery, and installation."""

    fs: Filesystem = field(default_factory=OsFilesystem)
    path_jail: PathJail | None = None
    document_roots: tuple[str, ...] | None = None
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    @classmethod
    def default(cls) -> RuntimeContext:
        return cls()

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        fs: Filesystem | None = None,
    ) -> RuntimeContext:
        env = os.environ if environ is None else environ
        boundary_raw = env.get(ENV_PATH_JAIL_BOUNDARY, JailBoundary.TRUST.value).strip().lower()
        try:
            boundary = JailBoundary(boundary_raw)
        except ValueError as exc:
            raise ValueError(
                f"{ENV_PATH_JAIL_BOUNDARY} must be one of: "
                f"{', '.join(item.value for item in JailBoundary)}"
            ) from exc
        jail = PathJail.from_open_basedir(env.get(ENV_PATH_JAIL, ""), boundary=boundary)
        return cls(
            fs=fs if fs is not None else OsFilesystem(),
            path_jail=jail,
            document_roots=None,
            environ=env,
        )

    def detect_document_roots(self) -> tuple[str, ...]:
        """Return absolute, de-duplicated document roots (without trailing separators)."""

        if self.document_roots is not None:
            raw_roots: list[str] = list(self.document_roots)
        else:
            raw_roots = [self.environ.get(key, "") for key in DOCUMENT_ROOT_ENV_KEYS]
            extra = self.environ.get(ENV_DOCUMENT_ROOT, "")
            raw_roots.extend(extra.split(os.pathsep) if extra else [])

        roots: list[str] = []
        for raw in raw_roots:
            text = raw.strip()
            if not text or "\0" in text:
                continue
            if not (text.startswith("/") or text.startswith("\\") or _has_drive(text)):
                continue
            normalized = text if text in {"/", "\\"} else text.rstrip("/\\")
            if normalized not in roots:
                roots.append(normalized)
        return tuple(roots)


def _has_drive(text: str) -> bool:
    return len(text) >= 3 and text[0].isalpha() and text[1] == ":" and text[2] in "/\\"


def ensure_context(ctx: RuntimeContext | None) -> RuntimeContext:
    return ctx if ctx is not None else RuntimeContext.default()


__all__ = [
    "JailBoundary",
    "PathJail",
    "RuntimeContext",
    "ensure_context",
]
