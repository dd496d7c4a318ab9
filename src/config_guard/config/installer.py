"""
config-guard — runtime config installer

File: src/config_guard/config/installer.py
Last updated: 2026-10-17

Purpose
- Pick the safest writable location for the runtime config file on the current host and
  create it atomically with locked-down permissions.

What should be included in this file
- Default write candidates (POSIX and Windows).
- Read-only candidate evaluation and scoring; ``recommend_write_path``.
- ``init`` / ``init_recommended`` performing write-temp-then-replace installs.

Functional requirements
- Recommendation never touches the filesystem beyond inspection.
- A valid existing file is reused unchanged unless ``force``.
- The directory chain is verified before any byte is written; a file created by a call that
  later fails post-validation is removed again.
- All per-candidate failures are aggregated into one ``InstallError``.

Non-functional requirements
- Temp files are created exclusively in the target directory (same filesystem as the target).
- Scores are internal; only the ordering they imply is stable.
"""

from __future__ import annotations

import contextlib
import json
import ntpath
import os
import posixpath
import secrets
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

import structlog

from config_guard.config.document import thaw
from config_guard.config.repository import assert_outside_document_root
from config_guard.constants import (
    APP_DISPLAY_NAME,
    APP_NAME,
    CONFIG_FILENAME,
    RUNTIME_CONFIG_DIR_MODE,
    RUNTIME_CONFIG_FILE_MODE,
    RUNTIME_CONFIG_FILENAME,
)
from config_guard.context import RuntimeContext, ensure_context
from config_guard.errors import ConfigGuardError, InstallError, SecurityError
from config_guard.security.path_rules import (
    assert_safe_path,
    is_likely_windows_mount_path,
    is_temp_path,
    is_within,
)
from config_guard.security.permissions import (
    assert_no_symlink_parents,
    assert_parent_dirs_not_writable,
)
from config_guard.security.policy import FilePolicy
from config_guard.security.secure_file import assert_secure_readable_file

SCORE_SYSTEM: Final[int] = 100
SCORE_USER_CONFIG: Final[int] = 60
SCORE_OTHER: Final[int] = 20
PENALTY_WINDOWS_MOUNT: Final[int] = 40
PENALTY_TEMP_DIR: Final[int] = 30
PENALTY_STICKY_PARENT: Final[int] = 10
BONUS_EXISTING_VALID: Final[int] = 25


class CandidateStatus(StrEnum):
    OK = "ok"
    WARN = "warn"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class CandidateAnalysis:
    path: str
    status: CandidateStatus
    score: int
    reason: str
    index: int

    @property
    def rejected(self) -> bool:
        return self.status is CandidateStatus.REJECT

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "status": self.status.value,
            "score": self.score,
            "reason": self.reason,
            "index": self.index,
        }


@dataclass(frozen=True, slots=True)
class Recommendation:
    path: str | None
    reason: str
    analyses: tuple[CandidateAnalysis, ...] = ()
    rejected: Mapping[str, str] = field(default_factory=dict)
    candidates: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class InstallResult:
    path: str
    created: bool
    rejected: Mapping[str, str] = field(default_factory=dict)


def _pathmod(path: str) -> Any:
    if "\\" in path and "/" not in path:
        return ntpath
    return posixpath


def _dedupe_stripped(paths: Iterable[str]) -> list[str]:
    ordered: list[str] = []
    for raw in paths:
        path = str(raw).strip()
        if path and path not in ordered:
            ordered.append(path)
    return ordered


def encode_payload(payload: Mapping[str, Any] | None) -> bytes:
    """Pretty-printed UTF-8 JSON object with a trailing newline."""

    data = thaw(payload) if payload is not None else {}
    if not isinstance(data, dict):
        raise InstallError("Runtime config payload must be a JSON object.")
    try:
        text = json.dumps(data, indent=4, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise InstallError("Unable to encode runtime config JSON.") from exc
    return (text + "\n").encode("utf-8")


class RuntimeConfigInstaller:
    """Recommend and provision the runtime config file."""

    def __init__(
        self,
        *,
        ctx: RuntimeContext | None = None,
        logger: Any | None = None,
    ) -> None:
        self._ctx = ensure_context(ctx)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    # -- candidates --------------------------------------------------------

    def _env(self, key: str) -> str | None:
        value = self._ctx.environ.get(key, "").strip()
        return value or None

    def _home_dir(self) -> str | None:
        home = self._env("HOME")
        if home is not None:
            return home.rstrip("/\\") or home
        expanded = os.path.expanduser("~")
        return expanded if expanded and expanded != "~" else None

    def default_write_paths(self) -> list[str]:
        if not self._ctx.fs.is_posix:
            return self._default_write_paths_windows()

        paths = [
            posixpath.join("/etc", APP_NAME, RUNTIME_CONFIG_FILENAME),
            posixpath.join("/etc", APP_NAME, CONFIG_FILENAME),
        ]
        home = self._home_dir()
        if home is not None and home.startswith("/"):
            paths.append(posixpath.join(home, ".config", APP_NAME, RUNTIME_CONFIG_FILENAME))
            paths.append(posixpath.join(home, f".{APP_NAME}", RUNTIME_CONFIG_FILENAME))
        with contextlib.suppress(OSError):
            cwd = os.getcwd()
            if cwd:
                paths.append(posixpath.join(cwd, f".{APP_NAME}", RUNTIME_CONFIG_FILENAME))
        return _dedupe_stripped(paths)

    def _default_write_paths_windows(self) -> list[str]:
        program_data = self._env("PROGRAMDATA") or "C:\\ProgramData"
        paths = [ntpath.join(program_data, APP_DISPLAY_NAME, RUNTIME_CONFIG_FILENAME)]
        for variable in ("APPDATA", "LOCALAPPDATA"):
            base = self._env(variable)
            if base is not None:
                paths.append(
                    ntpath.join(base.rstrip("\\/"), APP_DISPLAY_NAME, RUNTIME_CONFIG_FILENAME)
                )
        profile = self._env("USERPROFILE")
        if profile is not None:
            paths.append(ntpath.join(profile.rstrip("\\/"), f".{APP_NAME}", RUNTIME_CONFIG_FILENAME))
        return _dedupe_stripped(paths)

    # -- heuristics --------------------------------------------------------

    @staticmethod
    def is_likely_windows_mount_path(path: str) -> bool:
        return is_likely_windows_mount_path(path)

    @staticmethod
    def is_temp_path(path: str) -> bool:
        return is_temp_path(path)

    def _base_score(self, path: str) -> int:
        normalized = path.replace("\\", "/")
        lowered = normalized.lower()
        system_roots = ["/etc", "c:/programdata"]
        program_data = self._env("PROGRAMDATA")
        if program_data is not None:
            system_roots.append(program_data.replace("\\", "/").lower())
        if any(is_within(lowered, root) for root in system_roots):
            return SCORE_SYSTEM

        user_roots = [
            value.replace("\\", "/")
            for value in (
                self._home_dir(),
                self._env("APPDATA"),
                self._env("LOCALAPPDATA"),
                self._env("USERPROFILE"),
            )
            if value
        ]
        if "/.config/" in normalized or any(
            is_within(normalized, root) for root in user_roots if root != "/"
        ):
            return SCORE_USER_CONFIG
        return SCORE_OTHER

    def _nearest_existing_dir(self, directory: str) -> str | None:
        fs = self._ctx.fs
        pathmod = _pathmod(directory)
        current = directory
        while current not in {"", "."}:
            if fs.exists(current):
                try:
                    return current if fs.stat(current).is_dir else None
                except OSError:
                    return None
            parent = pathmod.dirname(current)
            if parent == current:
                break
            current = parent
        return None

    # -- recommendation ----------------------------------------------------

    def evaluate_candidate(self, path: str, index: int = 0) -> CandidateAnalysis:
        """Score one candidate without modifying anything."""

        def reject(reason: str) -> CandidateAnalysis:
            return CandidateAnalysis(
                path=path, status=CandidateStatus.REJECT, score=0, reason=reason, index=index
            )

        ctx = self._ctx
        fs = ctx.fs
        try:
            path = assert_safe_path(path, label="Runtime config", require_absolute=True)
            assert_outside_document_root(path, ctx=ctx, label="Runtime config")
            directory = _pathmod(path).dirname(path)
            assert_no_symlink_parents(ctx, directory, label="Parent directory")
            if fs.exists(directory):
                self._assert_plain_directory(directory)
        except SecurityError as exc:
            return reject(exc.reason)

        score = self._base_score(path)
        if is_likely_windows_mount_path(path):
            score -= PENALTY_WINDOWS_MOUNT
        if is_temp_path(path):
            score -= PENALTY_TEMP_DIR

        if fs.exists(path):
            if fs.is_symlink(path):
                return reject(f"Runtime config file must not be a symlink: {path}")
            try:
                is_file = fs.lstat(path).is_file
            except OSError as exc:
                return reject(f"Unable to inspect runtime config path: {path} ({exc.strerror})")
            if not is_file:
                return reject(f"Runtime config path exists but is not a file: {path}")
            try:
                assert_secure_readable_file(path, FilePolicy.strict(), ctx=ctx)
            except SecurityError as exc:
                return reject(exc.reason)
            return CandidateAnalysis(
                path=path,
                status=CandidateStatus.OK,
                score=score + BONUS_EXISTING_VALID,
                reason="Existing runtime config file is present and passes strict validation.",
                index=index,
            )

        parent = self._nearest_existing_dir(directory)
        if parent is None:
            return reject("No existing parent directory found.")
        if not fs.writable(parent):
            return reject(f"Parent directory is not writable: {parent}")

        status = CandidateStatus.OK
        reason = f"Parent directory is writable: {parent}"
        if fs.is_posix:
            info = fs.stat(parent)
            if info.permissions & 0o022:
                if not info.sticky:
                    return reject(
                        f"Parent directory is group/world-writable without sticky bit "
                        f"({info.permissions:o}): {parent}"
                    )
                status = CandidateStatus.WARN
                score -= PENALTY_STICKY_PARENT
                reason = (
                    f"Parent directory is group/world-writable with sticky bit "
                    f"({info.permissions:o}): {parent}"
                )

        return CandidateAnalysis(path=path, status=status, score=score, reason=reason, index=index)

    def recommend_write_path(self, candidates: Iterable[str] | None = None) -> Recommendation:
        normalized = _dedupe_stripped(
            candidates if candidates is not None else self.default_write_paths()
        )
        analyses = tuple(
            self.evaluate_candidate(path, index) for index, path in enumerate(normalized)
        )
        rejected = {item.path: item.reason for item in analyses if item.rejected}
        viable = [item for item in analyses if not item.rejected]

        if not viable:
            self._logger.warning("runtime_config_no_writable_candidate", rejected=len(rejected))
            return Recommendation(
                path=None,
                reason="No writable candidate path found.",
                analyses=analyses,
                rejected=rejected,
                candidates=tuple(normalized),
            )

        best = max(viable, key=lambda item: (item.score, -item.index))
        self._logger.info(
            "runtime_config_recommended",
            path=best.path,
            score=best.score,
            status=best.status.value,
        )
        return Recommendation(
            path=best.path,
            reason=best.reason,
            analyses=analyses,
            rejected=rejected,
            candidates=tuple(normalized),
        )

    # -- installation ------------------------------------------------------

    def init(
        self,
        payload: Mapping[str, Any] | None = None,
        path: str | None = None,
        *,
        force: bool = False,
        candidates: Iterable[str] | None = None,
    ) -> InstallResult:
        """Create (or reuse) the runtime config file.

        An explicit ``path`` is the only candidate tried; otherwise ``candidates`` (or the
        default write paths) are tried in order.
        """

        data = encode_payload(payload)

        targets: list[str] = []
        if path is not None and path.strip():
            targets = [path.strip()]
        elif candidates is not None:
            targets = _dedupe_stripped(candidates)
        else:
            targets = self.default_write_paths()

        rejected: dict[str, str] = {}
        for candidate in targets:
            try:
                created = self._ensure_runtime_config_file(candidate, data, force=force)
            except (ConfigGuardError, OSError) as exc:
                rejected[candidate] = str(exc)
                self._logger.warning(
                    "runtime_config_candidate_rejected", path=candidate, reason=str(exc)
                )
                continue
            self._logger.info(
                "runtime_config_installed" if created else "runtime_config_reused",
                path=candidate,
                rejected=len(rejected),
            )
            return InstallResult(path=candidate, created=created, rejected=rejected)

        lines = [f"- {candidate}: {reason}" for candidate, reason in rejected.items()]
        raise InstallError(
            "Unable to initialize runtime config file.\nRejected candidates:\n"
            + ("\n".join(lines) if lines else "(none)"),
            rejected=rejected,
        )

    def init_recommended(
        self,
        payload: Mapping[str, Any] | None = None,
        *,
        force: bool = False,
        candidates: Iterable[str] | None = None,
    ) -> InstallResult:
        recommendation = self.recommend_write_path(candidates)
        viable = sorted(
            (item for item in recommendation.analyses if not item.rejected),
            key=lambda item: (-item.score, item.index),
        )
        ordered = [item.path for item in viable]
        ordered.extend(item.path for item in recommendation.analyses if item.rejected)
        return self.init(payload, force=force, candidates=ordered)

    def _ensure_runtime_config_file(self, path: str, data: bytes, *, force: bool) -> bool:
        ctx = self._ctx
        fs = ctx.fs
        strict = FilePolicy.strict()

        path = assert_safe_path(path, label="Runtime config", require_absolute=True)
        assert_outside_document_root(path, ctx=ctx, label="Runtime config")

        pathmod = _pathmod(path)
        directory = pathmod.dirname(path)
        if directory in {"", ".", "/", "\\"} or pathmod.dirname(directory) == directory:
            raise SecurityError(f"Runtime config path must not be root: {path}", path=path)

        assert_no_symlink_parents(ctx, directory, label="Parent directory")
        if fs.exists(directory):
            self._assert_plain_directory(directory)

        existing_parent = self._nearest_existing_dir(directory)
        if existing_parent is None:
            raise SecurityError(f"No existing parent directory found for: {path}", path=path)
        if fs.is_posix:
            assert_parent_dirs_not_writable(ctx, existing_parent, policy=strict.name)

        created_dirs: list[str] = []
        if existing_parent != directory:
            created_dirs = fs.makedirs(directory, RUNTIME_CONFIG_DIR_MODE)
            if fs.is_posix:
                fs.chmod(directory, RUNTIME_CONFIG_DIR_MODE)
            self._logger.info("runtime_config_dir_created", directory=directory)

        try:
            return self._install_into(path, directory, data, force=force)
        except Exception:
            self._remove_created_dirs(created_dirs)
            raise

    def _install_into(self, path: str, directory: str, data: bytes, *, force: bool) -> bool:
        ctx = self._ctx
        fs = ctx.fs
        strict = FilePolicy.strict()

        self._assert_plain_directory(directory)
        if fs.is_posix:
            assert_parent_dirs_not_writable(ctx, directory, policy=strict.name)

        existed = fs.exists(path)
        if existed:
            if fs.is_symlink(path):
                raise SecurityError(
                    f"Runtime config file must not be a symlink: {path}", path=path
                )
            if not fs.lstat(path).is_file:
                raise SecurityError(
                    f"Runtime config path exists but is not a file: {path}", path=path
                )
            try:
                assert_secure_readable_file(path, strict, ctx=ctx)
            except SecurityError as exc:
                if not force:
                    raise SecurityError(
                        f"Existing runtime config file is not secure/valid: {exc.reason} "
                        "(use force=True to overwrite)",
                        path=path,
                        mode=exc.mode,
                        policy=exc.policy,
                    ) from exc
            else:
                if not force:
                    return False

        self._write_atomic(path, directory, data)

        try:
            assert_secure_readable_file(path, strict, ctx=ctx)
        except SecurityError:
            if not existed:
                with contextlib.suppress(OSError):
                    fs.unlink(path)
            raise
        return True

    def _assert_plain_directory(self, directory: str) -> None:
        fs = self._ctx.fs
        if fs.is_symlink(directory):
            raise SecurityError(
                f"Config directory must not be a symlink: {directory}", path=directory
            )
        if not fs.lstat(directory).is_dir:
            raise SecurityError(f"Config directory is not a directory: {directory}", path=directory)

    def _remove_created_dirs(self, created: list[str]) -> None:
        fs = self._ctx.fs
        for directory in reversed(created):
            try:
                fs.rmdir(directory)
            except OSError:
                self._logger.warning("runtime_config_dir_cleanup_failed", directory=directory)
                return
            self._logger.info("runtime_config_dir_removed", directory=directory)

    def _write_atomic(self, path: str, directory: str, data: bytes) -> None:
        fs = self._ctx.fs
        pathmod = _pathmod(path)
        tmp = pathmod.join(directory, f".{APP_NAME}.{secrets.token_hex(8)}.tmp")

        try:
            fs.create_exclusive(tmp, data, RUNTIME_CONFIG_FILE_MODE)
        except OSError as exc:
            raise InstallError(f"Unable to create temp file in: {directory}") from exc

        try:
            if fs.is_posix:
                fs.chmod(tmp, RUNTIME_CONFIG_FILE_MODE)
            fs.replace(tmp, path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                fs.unlink(tmp)
            raise InstallError(f"Unable to move runtime config into place: {path}") from exc

        if fs.is_posix:
            fs.chmod(path, RUNTIME_CONFIG_FILE_MODE)
        fs.fsync_dir(directory)


__all__ = [
    "BONUS_EXISTING_VALID",
    "CandidateAnalysis",
    "CandidateStatus",
    "InstallResult",
    "PENALTY_STICKY_PARENT",
    "PENALTY_TEMP_DIR",
    "PENALTY_WINDOWS_MOUNT",
    "Recommendation",
    "RuntimeConfigInstaller",
    "SCORE_OTHER",
    "SCORE_SYSTEM",
    "SCORE_USER_CONFIG",
    "encode_payload",
]
