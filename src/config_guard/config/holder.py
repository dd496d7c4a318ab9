"""Init-once holder for the application's runtime config repository."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from config_guard.config.bootstrap import load_first_available, try_load_first_available
from config_guard.config.repository import ConfigRepository
from config_guard.context import RuntimeContext
from config_guard.errors import ConfigHolderError
from config_guard.security.policy import FilePolicy


class ConfigHolder:
    """Process-wide config slot, created and owned by the application's composition root.

    Usage::

        holder = ConfigHolder()
        holder.init_from_json_file("/etc/config-guard/config.runtime.json")
        dsn = holder.require_string("db.dsn")
    """

    __slots__ = ("_logger", "_repo")

    def __init__(self, *, logger: Any | None = None) -> None:
        self._repo: ConfigRepository | None = None
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def is_initialized(self) -> bool:
        return self._repo is not None

    def init(self, repo: ConfigRepository) -> None:
        if self._repo is not None:
            raise ConfigHolderError("Config already initialized.")
        self._repo = repo
        self._logger.info("config_holder_initialized", source_path=repo.source_path)

    def init_if_needed(self, repo: ConfigRepository) -> None:
        if self._repo is None:
            self.init(repo)

    def init_from_json_file(
        self,
        path: str,
        policy: FilePolicy | None = None,
        *,
        ctx: RuntimeContext | None = None,
    ) -> None:
        if self._repo is not None:
            raise ConfigHolderError("Config already initialized.")
        self.init(ConfigRepository.from_json_file(path, policy, ctx=ctx))

    def init_from_first_available(
        self,
        paths: Iterable[str] | None = None,
        policy: FilePolicy | None = None,
        *,
        ctx: RuntimeContext | None = None,
    ) -> None:
        if self._repo is not None:
            raise ConfigHolderError("Config already initialized.")
        self.init(load_first_available(paths, policy, ctx=ctx))

    def try_init_from_first_available(
        self,
        paths: Iterable[str] | None = None,
        policy: FilePolicy | None = None,
        *,
        ctx: RuntimeContext | None = None,
    ) -> bool:
        if self._repo is not None:
            return True
        repo = try_load_first_available(paths, policy, ctx=ctx)
        if repo is None:
            return False
        self.init(repo)
        return True

    def repo(self) -> ConfigRepository:
        if self._repo is None:
            raise ConfigHolderError("Config is not initialized.")
        return self._repo

    def get(self, key: str, default: Any = None) -> Any:
        return self.repo().get(key, default)

    def require_string(self, key: str) -> str:
        return self.repo().require_string(key)


__all__ = ["ConfigHolder"]
