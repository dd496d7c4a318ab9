"""
config-guard — filesystem and process-identity abstraction

File: src/config_guard/security/filesystem.py
Last updated: 2026-10-17

Purpose
- Provide the narrow filesystem surface every policy check and the installer depend on.
- Keep OS behaviour injectable: production uses ``OsFilesystem``; tests use ``FakeFilesystem``.

What should be included in this file
- ``StatInfo`` value type with POSIX mode helpers.
- ``Filesystem`` protocol (inspection + the few write primitives the installer needs).
- ``OsFilesystem`` real implementation.

Functional requirements
- ``read_bytes`` must refuse to follow a final symlink (``O_NOFOLLOW``) where the OS supports it.
- ``create_exclusive`` must never overwrite an existing path.

Non-functional requirements
- Standard library only; no handle outlives a single call.
"""

from __future__ import annotations

import contextlib
import os
import stat
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

PathLike = str | os.PathLike[str]

_READ_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True, slots=True)
class StatInfo:
    """Subset of ``os.stat_result`` needed by policy checks."""

    mode: int
    uid: int
    size: int

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_file(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    @property
    def permissions(self) -> int:
        return self.mode & 0o777

    @property
    def sticky(self) -> bool:
        return bool(self.mode & stat.S_ISVTX)

    @classmethod
    def from_stat_result(cls, result: os.stat_result) -> StatInfo:
        return cls(mode=result.st_mode, uid=result.st_uid, size=result.st_size)


@runtime_checkable
class Filesystem(Protocol):
    """Filesystem + identity operations used by config-guard."""

    @property
    def is_posix(self) -> bool: ...

    def lstat(self, path: str) -> StatInfo: ...

    def stat(self, path: str) -> StatInfo: ...

    def exists(self, path: str) -> bool: ...

    def is_symlink(self, path: str) -> bool: ...

    def readable(self, path: str) -> bool: ...

    def writable(self, path: str) -> bool: ...

    def realpath(self, path: str) -> str: ...

    def effective_uid(self) -> int | None: ...

    def read_bytes(self, path: str, *, limit: int) -> bytes: ...

    def makedirs(self, path: str, mode: int) -> list[str]: ...

    def rmdir(self, path: str) -> None: ...

    def chmod(self, path: str, mode: int) -> None: ...

    def create_exclusive(self, path: str, data: bytes, mode: int) -> None: ...

    def replace(self, source: str, target: str) -> None: ...

    def unlink(self, path: str) -> None: ...

    def fsync_dir(self, path: str) -> None: ...


class OsFilesystem:
    """``Filesystem`` backed by the running operating system."""

    @property
    def is_posix(self) -> bool:
        return os.name == "posix"

    def lstat(self, path: str) -> StatInfo:
        return StatInfo.from_stat_result(os.lstat(path))

    def stat(self, path: str) -> StatInfo:
        return StatInfo.from_stat_result(os.stat(path))

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def is_symlink(self, path: str) -> bool:
        return os.path.islink(path)

    def readable(self, path: str) -> bool:
        return os.access(path, os.R_OK)

    def writable(self, path: str) -> bool:
        return os.access(path, os.W_OK)

    def realpath(self, path: str) -> str:
        return os.path.realpath(path)

    def effective_uid(self) -> int | None:
        geteuid = getattr(os, "geteuid", None)
        if geteuid is None:
            return None
        return int(geteuid())

    def read_bytes(self, path: str, *, limit: int) -> bytes:
        flags = os.O_RDONLY | getattr(os, "O_NOFOLLOW", 0) | getattr(os, "O_BINARY", 0)
        fd = os.open(path, flags)
        chunks: list[bytes] = []
        remaining = max(limit, 0)
        try:
            while remaining > 0:
                chunk = os.read(fd, min(_READ_CHUNK_BYTES, remaining))
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        finally:
            os.close(fd)
        return b"".join(chunks)

    def makedirs(self, path: str, mode: int) -> list[str]:
        """Create missing components one by one, each chmodded to ``mode`` regardless of the umask.

        Returns the directories this call created, outermost first.
        """

        missing: list[str] = []
        current = os.path.abspath(path)
        while not os.path.isdir(current):
            missing.append(current)
            parent = os.path.dirname(current)
            if parent == current:
                break
            current = parent

        created: list[str] = []
        for directory in reversed(missing):
            try:
                os.mkdir(directory, mode)
            except FileExistsError:
                if not os.path.isdir(directory):
                    raise
                continue
            created.append(directory)
            os.chmod(directory, mode)
        return created

    def rmdir(self, path: str) -> None:
        os.rmdir(path)

    def chmod(self, path: str, mode: int) -> None:
        os.chmod(path, mode)

    def create_exclusive(self, path: str, data: bytes, mode: int) -> None:
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_NOFOLLOW", 0)
        flags |= getattr(os, "O_BINARY", 0)
        fd = os.open(path, flags, mode)
        try:
            view = memoryview(data)
            while view:
                written = os.write(fd, view)
                view = view[written:]
            os.fsync(fd)
        finally:
            os.close(fd)

    def replace(self, source: str, target: str) -> None:
        os.replace(source, target)

    def unlink(self, path: str) -> None:
        os.unlink(path)

    def fsync_dir(self, path: str) -> None:
        """Best-effort directory fsync for metadata durability after ``replace``."""

        if os.name == "nt":
            return

        flags = os.O_RDONLY
        if hasattr(os, "O_DIRECTORY"):
            flags |= os.O_DIRECTORY

        try:
            dir_fd = os.open(path, flags)
        except OSError:
            return

        with contextlib.suppress(OSError):
            os.fsync(dir_fd)
        os.close(dir_fd)


__all__ = [
    "Filesystem",
    "OsFilesystem",
    "PathLike",
    "StatInfo",
]
