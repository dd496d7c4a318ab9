"""
config-guard — runtime config discovery

File: src/config_guard/config/bootstrap.py
Last updated: 2026-10-17

Purpose
- Scan a prioritized candidate list and load the first runtime config file that passes policy.

What should be included in this file
- Default candidate paths (system, container secrets, user home; Windows equivalents).
- ``scan_first_available`` returning a diagnosable ``ScanResult``.
- Raising and non-raising load helpers.

Functional requirements
- First match wins; later candidates are never consulted after a success.
- Missing candidates are tried but not rejected; existing candidates that fail are recorded
  with the reason and skipped.
- The explicit ``CONFIG_GUARD_CONFIG`` override is consulted first.

Non-functional requirements
- Decisions logged through structlog; file contents never logged.
"""

from __future__ import annotations

import ntpath
import os
import posixpath
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

import structlog

from config_guard.config.repository import ConfigRepository
from config_guard.constants import (
    APP_DISPLAY_NAME,
    APP_NAME,
    CONFIG_FILENAME,
    ENV_CONFIG_PATH,
    RUNTIME_CONFIG_FILENAME,
)
from config_guard.context import RuntimeContext, ensure_context
from config_guard.errors import BootstrapError, ConfigGuardError
from config_guard.security.path_rules import assert_safe_path
from config_guard.security.policy import FilePolicy

_logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Outcome of one discovery pass."""

    repo: ConfigRepository | None
    selected_path: str | None
    rejected: Mapping[str, str] = field(default_factory=dict)
    tried_paths: tuple[str, ...] = ()

    @property
    def found_any(self) -> bool:
        """True when at least one candidate existed (selected or rejected)."""

        return self.repo is not None or bool(self.rejected)

    @property
    def all_rejected(self) -> bool:
        return self.repo is None and bool(self.rejected)


def _dedupe(paths: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered


def _home_dir(environ: Mapping[str, str]) -> str:
    home = environ.get("HOME", "").strip()
    return home or os.path.expanduser("~")


def default_candidate_paths(*, ctx: RuntimeContext | None = None) -> list[str]:
    """Highest-trust locations first."""

    ctx = ensure_context(ctx)
    env = ctx.environ
    explicit = env.get(ENV_CONFIG_PATH, "").strip()
    paths: list[str] = [explicit] if explicit else []

    if ctx.fs.is_posix:
        home = _home_dir(env)
        paths.extend(
            [
                posixpath.join("/etc", APP_NAME, CONFIG_FILENAME),
                posixpath.join("/etc", APP_NAME, RUNTIME_CONFIG_FILENAME),
                posixpath.join("/etc", APP_NAME, f"{APP_NAME}.json"),
                posixpath.join("/run/secrets", f"{APP_NAME}-config.json"),
                posixpath.join("/run/secrets", f"{APP_NAME}.json"),
            ]
        )
        if home and home.startswith("/"):
            paths.append(posixpath.join(home, ".config", APP_NAME, RUNTIME_CONFIG_FILENAME))
            paths.append(posixpath.join(home, f".{APP_NAME}", RUNTIME_CONFIG_FILENAME))
        return _dedupe(paths)

    program_data = env.get("PROGRAMDATA", "").strip() or "C:\\ProgramData"
    paths.append(ntpath.join(program_data, APP_DISPLAY_NAME, RUNTIME_CONFIG_FILENAME))
    for variable in ("APPDATA", "LOCALAPPDATA"):
        base = env.get(variable, "").strip()
        if base:
            paths.append(ntpath.join(base, APP_DISPLAY_NAME, RUNTIME_CONFIG_FILENAME))
    profile = env.get("USERPROFILE", "").strip()
    if profile:
        paths.append(ntpath.join(profile, f".{APP_NAME}", RUNTIME_CONFIG_FILENAME))
    return _dedupe(paths)


def scan_first_available(
    paths: Iterable[str] | None = None,
    policy: FilePolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> ScanResult:
    ctx = ensure_context(ctx)
    candidates = list(paths) if paths is not None else default_candidate_paths(ctx=ctx)

    tried: list[str] = []
    rejected: dict[str, str] = {}
    for raw in candidates:
        path = str(raw).strip()
        if not path:
            continue
        tried.append(path)
        try:
            assert_safe_path(path, label="Config file", require_absolute=True)
        except ConfigGuardError as exc:
            rejected[path] = str(exc)
            _logger.warning("config_bootstrap_candidate_rejected", path=path, reason=str(exc))
            continue
        if not ctx.fs.exists(path):
            continue
        try:
            repo = ConfigRepository.from_json_file(path, policy, ctx=ctx)
        except ConfigGuardError as exc:
            rejected[path] = str(exc)
            _logger.warning("config_bootstrap_candidate_rejected", path=path, reason=str(exc))
            continue
        _logger.info("config_bootstrap_selected", path=path, rejected=len(rejected))
        return ScanResult(
            repo=repo, selected_path=path, rejected=rejected, tried_paths=tuple(tried)
        )

    _logger.info("config_bootstrap_no_candidate", tried=len(tried), rejected=len(rejected))
    return ScanResult(repo=None, selected_path=None, rejected=rejected, tried_paths=tuple(tried))


def format_scan_failure(result: ScanResult) -> str:
    tried = ", ".join(f'"{path}"' for path in result.tried_paths) or "<none>"
    lines = [f"No runtime config file found (tried: {tried})."]
    if result.rejected:
        lines.append("Rejected files:")
        lines.extend(f"- {path}: {reason}" for path, reason in result.rejected.items())
    return "\n".join(lines)


def load_first_available(
    paths: Iterable[str] | None = None,
    policy: FilePolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> ConfigRepository:
    result = scan_first_available(paths, policy, ctx=ctx)
    if result.repo is not None:
        return result.repo
    raise BootstrapError(
        format_scan_failure(result),
        tried_paths=result.tried_paths,
        rejected=result.rejected,
    )


def try_load_first_available(
    paths: Iterable[str] | None = None,
    policy: FilePolicy | None = None,
    *,
    ctx: RuntimeContext | None = None,
) -> ConfigRepository | None:
    return scan_first_available(paths, policy, ctx=ctx).repo


__all__ = [
    "ScanResult",
    "default_candidate_paths",
    "format_scan_failure",
    "load_first_available",
    "scan_first_available",
    "try_load_first_available",
]
