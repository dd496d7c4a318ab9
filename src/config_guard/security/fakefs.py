"""
config-guard — deterministic in-memory filesystem

File: src/config_guard/security/fakefs.py
Last updated: 2026-10-17

Purpose
- Implement ``Filesystem`` entirely in memory so ownership, euid, writability, and
  non-POSIX behaviour can be exercised without root privileges or ``chown``.

Functional requirements
- POSIX path semantics: absolute paths only, symlinks resolved per component.
- Access checks follow owner/other permission bits; euid 0 may read and write anything.

Non-functional requirements
- Deterministic; no interaction with the real filesystem.
"""

from __future__ import annotations

import errno
import posixpath
import stat
from dataclasses import dataclass, field

from config_guard.security.filesystem import StatInfo

_MAX_SYMLINK_DEPTH = 40
_KIND_BITS = {
    "file": stat.S_IFREG,
    "dir": stat.S_IFDIR,
    "symlink": stat.S_IFLNK,
}


@dataclass(slots=True)
class _Node:
    kind: str
    mode: int
    uid: int
    data: bytes = b""
    target: str = ""
    deny_write: bool = False
    deny_read: bool = False

    def info(self) -> StatInfo:
        size = len(self.data) if self.kind == "file" else len(self.target)
        return StatInfo(mode=_KIND_BITS[self.kind] | self.mode, uid=self.uid, size=size)


@dataclass(slots=True)
class FakeFilesystem:
    """In-memory ``Filesystem`` with configurable identity and platform."""

    euid: int | None = 1000
    posix: bool = True
    _nodes: dict[str, _Node] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        self._nodes.setdefault("/", _Node(kind="dir", mode=0o755, uid=0))

    # -- setup helpers -----------------------------------------------------

    def add_dir(self, path: str, *, mode: int = 0o700, uid: int | None = None) -> str:
        normalized = self._normalize(path)
        self._ensure_parents(normalized)
        self._nodes[normalized] = _Node(kind="dir", mode=mode & 0o7777, uid=self._owner(uid))
        return normalized

    def add_file(
        self,
        path: str,
        data: bytes | str = b"",
        *,
        mode: int = 0o600,
        uid: int | None = None,
    ) -> str:
        normalized = self._normalize(path)
        self._ensure_parents(normalized)
        payload = data.encode("utf-8") if isinstance(data, str) else data
        self._nodes[normalized] = _Node(
            kind="file", mode=mode & 0o7777, uid=self._owner(uid), data=payload
        )
        return normalized

    def add_symlink(self, path: str, target: str, *, uid: int | None = None) -> str:
        normalized = self._normalize(path)
        self._ensure_parents(normalized)
        self._nodes[normalized] = _Node(
            kind="symlink", mode=0o777, uid=self._owner(uid), target=target
        )
        return normalized

    def set_owner(self, path: str, uid: int) -> None:
        self._node_for(path, follow=False).uid = uid

    def deny_write(self, path: str, denied: bool = True) -> None:
        self._node_for(path, follow=True).deny_write = denied

    def deny_read(self, path: str, denied: bool = True) -> None:
        self._node_for(path, follow=True).deny_read = denied

    def read_text(self, path: str) -> str:
        return self._node_for(path, follow=True).data.decode("utf-8")

    def listdir(self, path: str) -> list[str]:
        directory = self._resolve(path, follow_last=True)
        prefix = directory.rstrip("/") + "/"
        names = [
            candidate[len(prefix) :]
            for candidate in self._nodes
            if candidate.startswith(prefix) and candidate != directory
        ]
        return sorted(name for name in names if "/" not in name)

    # -- Filesystem protocol -----------------------------------------------

    @property
    def is_posix(self) -> bool:
        return self.posix

    def lstat(self, path: str) -> StatInfo:
        return self._node_for(path, follow=False).info()

    def stat(self, path: str) -> StatInfo:
        return self._node_for(path, follow=True).info()

    def exists(self, path: str) -> bool:
        try:
            self._node_for(path, follow=False)
        except OSError:
            return False
        return True

    def is_symlink(self, path: str) -> bool:
        try:
            return self._node_for(path, follow=False).kind == "symlink"
        except OSError:
            return False

    def readable(self, path: str) -> bool:
        try:
            node = self._node_for(path, follow=True)
        except OSError:
            return False
        if node.deny_read:
            return False
        return self._allowed(node, owner_bit=0o400, other_bit=0o004)

    def writable(self, path: str) -> bool:
        try:
            node = self._node_for(path, follow=True)
        except OSError:
            return False
        if node.deny_write:
            return False
        return self._allowed(node, owner_bit=0o200, other_bit=0o002)

    def realpath(self, path: str) -> str:
        normalized = self._normalize(path)
        parts = [part for part in normalized.split("/") if part]
        resolved = "/"
        for index, part in enumerate(parts):
            candidate = posixpath.join(resolved, part)
            if candidate not in self._nodes:
                return posixpath.join(candidate, *parts[index + 1 :])
            resolved = self._resolve(candidate, follow_last=True)
        return resolved

    def effective_uid(self) -> int | None:
        return self.euid

    def read_bytes(self, path: str, *, limit: int) -> bytes:
        node = self._node_for(path, follow=False)
        if node.kind == "symlink":
            raise OSError(errno.ELOOP, "Too many levels of symbolic links", path)
        if node.kind == "dir":
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
        if node.deny_read:
            raise PermissionError(errno.EACCES, "Permission denied", path)
        return node.data[: max(limit, 0)]

    def makedirs(self, path: str, mode: int) -> list[str]:
        normalized = self._resolve_parent_chain(path)
        parts = [part for part in normalized.split("/") if part]
        current = "/"
        created: list[str] = []
        for part in parts:
            current = posixpath.join(current, part)
            node = self._nodes.get(current)
            if node is None:
                parent = posixpath.dirname(current)
                if not self.writable(parent):
                    raise PermissionError(errno.EACCES, "Permission denied", current)
                self._nodes[current] = _Node(kind="dir", mode=mode & 0o7777, uid=self._owner(None))
                created.append(current)
                continue
            if node.kind == "symlink":
                current = self._resolve(current, follow_last=True)
                node = self._nodes[current]
            if node.kind != "dir":
                raise NotADirectoryError(errno.ENOTDIR, "Not a directory", current)
        return created

    def rmdir(self, path: str) -> None:
        normalized = self._resolve_parent_chain(path)
        node = self._nodes.get(normalized)
        if node is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
        if node.kind != "dir":
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", path)
        if self.listdir(normalized):
            raise OSError(errno.ENOTEMPTY, "Directory not empty", path)
        del self._nodes[normalized]

    def chmod(self, path: str, mode: int) -> None:
        self._node_for(path, follow=True).mode = mode & 0o7777

    def create_exclusive(self, path: str, data: bytes, mode: int) -> None:
        normalized = self._resolve_parent_chain(path)
        if normalized in self._nodes:
            raise FileExistsError(errno.EEXIST, "File exists", path)
        parent = posixpath.dirname(normalized)
        parent_node = self._nodes.get(parent)
        if parent_node is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", parent)
        if parent_node.kind != "dir":
            raise NotADirectoryError(errno.ENOTDIR, "Not a directory", parent)
        if not self.writable(parent):
            raise PermissionError(errno.EACCES, "Permission denied", path)
        self._nodes[normalized] = _Node(
            kind="file", mode=mode & 0o7777, uid=self._owner(None), data=bytes(data)
        )

    def replace(self, source: str, target: str) -> None:
        source_path = self._resolve_parent_chain(source)
        target_path = self._resolve_parent_chain(target)
        node = self._nodes.get(source_path)
        if node is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", source)
        existing = self._nodes.get(target_path)
        if existing is not None and existing.kind == "dir":
            raise IsADirectoryError(errno.EISDIR, "Is a directory", target)
        if not self.writable(posixpath.dirname(target_path)):
            raise PermissionError(errno.EACCES, "Permission denied", target)
        del self._nodes[source_path]
        self._nodes[target_path] = node

    def unlink(self, path: str) -> None:
        normalized = self._resolve_parent_chain(path)
        node = self._nodes.get(normalized)
        if node is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
        if node.kind == "dir":
            raise IsADirectoryError(errno.EISDIR, "Is a directory", path)
        del self._nodes[normalized]

    def fsync_dir(self, path: str) -> None:
        return None

    # -- internals ---------------------------------------------------------

    def _owner(self, uid: int | None) -> int:
        if uid is not None:
            return uid
        return self.euid if self.euid is not None and self.euid >= 0 else 0

    def _allowed(self, node: _Node, *, owner_bit: int, other_bit: int) -> bool:
        if self.euid == 0:
            return True
        if self.euid is not None and node.uid == self.euid:
            return bool(node.mode & owner_bit)
        return bool(node.mode & other_bit)

    def _normalize(self, path: str) -> str:
        raw = str(path)
        if not raw.startswith("/"):
            raise FileNotFoundError(errno.ENOENT, "Fake filesystem requires absolute paths", raw)
        return posixpath.normpath(raw).replace("//", "/")

    def _ensure_parents(self, normalized: str) -> None:
        parent = posixpath.dirname(normalized)
        missing: list[str] = []
        while parent not in self._nodes:
            missing.append(parent)
            parent = posixpath.dirname(parent)
        for directory in reversed(missing):
            self._nodes[directory] = _Node(kind="dir", mode=0o755, uid=0)

    def _resolve_parent_chain(self, path: str) -> str:
        normalized = self._normalize(path)
        if normalized == "/":
            return normalized
        parent = posixpath.dirname(normalized)
        resolved_parent = self.realpath(parent)
        return posixpath.join(resolved_parent, posixpath.basename(normalized))

    def _resolve(self, path: str, *, follow_last: bool) -> str:
        normalized = self._normalize(path)
        parts = [part for part in normalized.split("/") if part]
        resolved = "/"
        depth = 0
        index = 0
        while index < len(parts):
            candidate = posixpath.join(resolved, parts[index])
            node = self._nodes.get(candidate)
            if node is None:
                raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)
            is_last = index == len(parts) - 1
            if node.kind == "symlink" and (follow_last or not is_last):
                depth += 1
                if depth > _MAX_SYMLINK_DEPTH:
                    raise OSError(errno.ELOOP, "Too many levels of symbolic links", path)
                target = node.target
                base = "/" if target.startswith("/") else resolved
                target_parts = [p for p in posixpath.normpath(posixpath.join(base, target)).split("/") if p]
                parts = target_parts + parts[index + 1 :]
                resolved = "/"
                index = 0
                continue
            if not is_last and node.kind != "dir":
                raise NotADirectoryError(errno.ENOTDIR, "Not a directory", path)
            resolved = candidate
            index += 1
        return resolved

    def _node_for(self, path: str, *, follow: bool) -> _Node:
        return self._nodes[self._resolve(path, follow_last=follow)]


__all__ = ["FakeFilesystem"]
