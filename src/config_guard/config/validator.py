"""
config-guard — runtime config section validators

File: src/config_guard/config/validator.py
Last updated: 2026-10-17

Purpose
- Schema-level assertions for the security-relevant top-level sections of a runtime config.

What should be included in this file
- One ``assert_<section>_config(repo)`` per section plus ``assert_runtime_config``.
- Shared helpers for int-like values, EVM addresses, RPC endpoints, IP/CIDR and host entries.

Functional requirements
- Every validator is a no-op when its section is absent.
- Structural problems raise ``ConfigValidationError`` naming the offending key.
- Filesystem-path values are delegated to ``secure_file`` / ``secure_dir`` and raise
  ``SecurityError``.

Non-functional requirements
- Filesystem access goes through the repository's runtime context.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Final
from urllib.parse import urlsplit

from config_guard.constants import LOOPBACK_HOSTS, ZERO_EVM_ADDRESS
from config_guard.errors import ConfigValidationError, SecurityError
from config_guard.security.path_rules import is_absolute_path
from config_guard.security.policy import DirPolicy, FilePolicy
from config_guard.security.secure_dir import assert_secure_readable_dir
from config_guard.security.secure_file import assert_secure_readable_file

if TYPE_CHECKING:
    from config_guard.config.repository import ConfigRepository

_EVM_ADDRESS_RE: Final[re.Pattern[str]] = re.compile(r"^0x[a-fA-F0-9]{40}$")
_HOST_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
_HOSTNAME_RE: Final[re.Pattern[str]] = re.compile(rf"^{_HOST_LABEL}(?:\.{_HOST_LABEL})*$")
_BRACKETED_HOST_RE: Final[re.Pattern[str]] = re.compile(r"^\[([^\]]+)\](?::([0-9]+))?$")

WEB3_MODES: Final[frozenset[str]] = frozenset({"root_uri", "full"})
TRUST_ENFORCEMENT_MODES: Final[frozenset[str]] = frozenset({"strict", "warn"})
DB_INLINE_CREDENTIAL_KEYS: Final[tuple[str, ...]] = ("dsn", "user", "username", "pass", "password")


def _present(value: Any) -> bool:
    return value is not None and value != ""


def _invalid_type(key: str, expected: str) -> ConfigValidationError:
    return ConfigValidationError(f"Invalid config type for {key} (expected {expected}).", key=key)


def _invalid_value(key: str, detail: str) -> ConfigValidationError:
    return ConfigValidationError(f"Invalid config value for {key} ({detail}).", key=key)


def _optional_string(repo: ConfigRepository, key: str) -> str | None:
    value = repo.get(key)
    if not _present(value):
        return None
    if not isinstance(value, str):
        raise _invalid_type(key, "string")
    return value


def _parse_int_like(value: Any, key: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed.isdigit() and trimmed.isascii():
            return int(trimmed)
    raise ConfigValidationError(
        f"Invalid config type/value for {key} (expected integer).", key=key
    )


def _int_in_range(repo: ConfigRepository, key: str, default: int, low: int, high: int) -> int:
    value = _parse_int_like(repo.get(key, default), key)
    if value < low or value > high:
        raise _invalid_value(key, f"expected {low}..{high}")
    return value


def _choice(repo: ConfigRepository, key: str, default: str, allowed: frozenset[str]) -> str:
    raw = repo.get(key, default)
    if not isinstance(raw, str):
        raise _invalid_type(key, "string")
    value = raw.strip().lower()
    if value not in allowed:
        expected = " or ".join(f'"{item}"' for item in sorted(allowed))
        raise _invalid_value(key, f"expected {expected}")
    return value


def _assert_absolute_path(path: str, key: str) -> None:
    text = path.strip()
    if not text or "\0" in text:
        raise ConfigValidationError(f"Invalid path for {key}.", key=key)
    if not is_absolute_path(text):
        raise ConfigValidationError(f"Invalid path for {key} (expected absolute path).", key=key)


def _resolved_absolute(repo: ConfigRepository, raw: str, key: str) -> str:
    resolved = repo.resolve_path(raw)
    _assert_absolute_path(resolved, key)
    return resolved


def assert_evm_address(address: str, key: str) -> None:
    text = address.strip()
    if not text:
        raise ConfigValidationError(f"Missing required config string: {key}", key=key)
    if not _EVM_ADDRESS_RE.match(text):
        raise ConfigValidationError(f"Invalid EVM address for {key}.", key=key)
    if text.lower() == ZERO_EVM_ADDRESS:
        raise ConfigValidationError(f"Invalid EVM address for {key} (zero address).", key=key)


def is_allowed_rpc_endpoint(endpoint: str) -> bool:
    """``https://`` anywhere; ``http://`` only for loopback hosts."""

    text = endpoint.strip()
    if not text:
        return False
    try:
        parts = urlsplit(text)
        host = (parts.hostname or "").lower()
    except ValueError:
        return False
    scheme = parts.scheme.lower()
    if scheme == "https":
        return bool(host)
    if scheme != "http":
        return False
    return host in LOOPBACK_HOSTS


def is_valid_ip_or_cidr(peer: str) -> bool:
    text = peer.strip()
    if not text or "\0" in text:
        return False
    if "/" not in text:
        try:
            ipaddress.ip_address(text)
        except ValueError:
            return False
        return True
    address, _, bits = text.partition("/")
    address = address.strip()
    bits = bits.strip()
    if not address or not bits.isdigit():
        return False
    try:
        ipaddress.ip_network(f"{address}/{bits}", strict=False)
    except ValueError:
        return False
    return True


def _valid_port(raw: str) -> bool:
    return raw.isdigit() and raw.isascii() and 1 <= int(raw) <= 65535


def is_valid_allowed_host(entry: str) -> bool:
    """Bare host with optional ``:port``, optional ``*.`` prefix, or ``[ipv6]:port``."""

    text = entry.strip()
    if not text or "\0" in text or "://" in text or "/" in text or "@" in text:
        return False

    bracketed = _BRACKETED_HOST_RE.match(text)
    if bracketed is not None:
        try:
            ipaddress.IPv6Address(bracketed.group(1))
        except ValueError:
            return False
        port = bracketed.group(2)
        return port is None or _valid_port(port)

    host, port = text, None
    if text.count(":") == 1:
        host, port = text.split(":", 1)
        if not _valid_port(port):
            return False
    elif ":" in text:
        return False

    wildcard = host.startswith("*.")
    if wildcard:
        host = host[2:]
    if not host or len(host) > 253:
        return False
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        return _HOSTNAME_RE.match(host) is not None
    return not wildcard


def _string_list(repo: ConfigRepository, key: str) -> Sequence[str] | None:
    value = repo.get(key)
    if not _present(value):
        return None
    if isinstance(value, (str, Mapping)) or not isinstance(value, Sequence):
        raise _invalid_type(key, "list of strings")
    entries: list[str] = []
    for index, item in enumerate(value):
        item_key = f"{key}[{index}]"
        if not isinstance(item, str):
            raise _invalid_type(item_key, "string")
        text = item.strip()
        if not text:
            raise _invalid_value(item_key, "expected non-empty string")
        if "\0" in text:
            raise _invalid_value(item_key, "contains null byte")
        entries.append(text)
    return entries


def assert_http_config(repo: ConfigRepository) -> None:
    """``http.trusted_proxies`` (IP/CIDR list) and ``http.allowed_hosts`` (host list)."""

    http = repo.get("http")
    if http is None:
        return
    if not isinstance(http, Mapping):
        raise _invalid_type("http", "object")

    proxies = _string_list(repo, "http.trusted_proxies") or ()
    for index, peer in enumerate(proxies):
        if not is_valid_ip_or_cidr(peer):
            raise _invalid_value(f"http.trusted_proxies[{index}]", "expected IP or CIDR")

    hosts = _string_list(repo, "http.allowed_hosts") or ()
    for index, host in enumerate(hosts):
        if not is_valid_allowed_host(host):
            raise _invalid_value(
                f"http.allowed_hosts[{index}]",
                "expected host, host:port, *.domain or [ipv6]:port; URLs are not allowed",
            )


def _agent_socket(repo: ConfigRepository, key: str) -> str | None:
    raw = _optional_string(repo, key)
    if raw is None:
        return None
    return _resolved_absolute(repo, raw, key)


def assert_crypto_config(repo: ConfigRepository) -> None:
    """``crypto.keys_dir`` (secrets dir) unless agent mode; optional ``crypto.manifest``."""

    crypto = repo.get("crypto")
    if crypto is None:
        return
    if not isinstance(crypto, Mapping):
        raise _invalid_type("crypto", "object")

    ctx = repo.context
    agent_socket = _agent_socket(repo, "crypto.agent.socket_path")

    keys_dir_raw = repo.get("crypto.keys_dir")
    if not _present(keys_dir_raw):
        if agent_socket is None:
            raise ConfigValidationError(
                "Missing required config string: crypto.keys_dir", key="crypto.keys_dir"
            )
    elif not isinstance(keys_dir_raw, str):
        raise _invalid_type("crypto.keys_dir", "string")
    else:
        keys_dir = repo.resolve_path(keys_dir_raw)
        if agent_socket is None:
            assert_secure_readable_dir(keys_dir, DirPolicy.secrets_dir(), ctx=ctx)
        elif not keys_dir.strip() or "\0" in keys_dir:
            # Agent mode: the runtime may not be able to read the key directory.
            raise _invalid_value("crypto.keys_dir", "expected non-empty path")

    manifest = _optional_string(repo, "crypto.manifest")
    if manifest is not None:
        assert_secure_readable_file(
            repo.resolve_path(manifest), FilePolicy.public_readable(), ctx=ctx
        )


def assert_db_config(repo: ConfigRepository) -> None:
    """Inline credentials are forbidden once a trust kernel is configured."""

    db = repo.get("db")
    if db is None:
        return
    if not isinstance(db, Mapping):
        raise _invalid_type("db", "object")

    agent_socket = _agent_socket(repo, "db.agent.socket_path")

    if repo.get("trust.web3") is not None:
        if agent_socket is None:
            raise ConfigValidationError(
                "Missing required config string: db.agent.socket_path "
                "(required when trust.web3 is configured)",
                key="db.agent.socket_path",
            )
        for name in DB_INLINE_CREDENTIAL_KEYS:
            if _present(db.get(name)):
                raise ConfigValidationError(
                    f"Inline database credentials are not allowed when trust.web3 is configured: db.{name}",
                    key=f"db.{name}",
                )
        return

    dsn = db.get("dsn")
    if dsn is None:
        return
    if not isinstance(dsn, str):
        raise _invalid_type("db.dsn", "string")
    if not dsn.strip():
        raise _invalid_value("db.dsn", "expected non-empty string")
    if "\0" in dsn:
        raise _invalid_value("db.dsn", "contains null byte")


def assert_observability_config(repo: ConfigRepository) -> None:
    """``observability.storage_dir`` (secrets dir) and optional ``observability.service``."""

    observability = repo.get("observability")
    if observability is None:
        return
    if not isinstance(observability, Mapping):
        raise _invalid_type("observability", "object")

    storage_dir = repo.resolve_path(repo.require_string("observability.storage_dir"))
    assert_secure_readable_dir(storage_dir, DirPolicy.secrets_dir(), ctx=repo.context)

    service = _optional_string(repo, "observability.service")
    if service is not None and not service.strip():
        raise _invalid_value("observability.service", "expected non-empty string")


def _assert_rpc_endpoints(repo: ConfigRepository) -> list[str]:
    endpoints = repo.get("trust.web3.rpc_endpoints")
    if (
        isinstance(endpoints, (str, Mapping))
        or not isinstance(endpoints, Sequence)
        or len(endpoints) == 0
    ):
        raise ConfigValidationError(
            "Missing required config list: trust.web3.rpc_endpoints",
            key="trust.web3.rpc_endpoints",
        )
    normalized: list[str] = []
    for index, endpoint in enumerate(endpoints):
        key = f"trust.web3.rpc_endpoints[{index}]"
        if not isinstance(endpoint, str):
            raise _invalid_type(key, "string")
        text = endpoint.strip()
        if not text:
            raise _invalid_value(key, "expected non-empty string")
        if "\0" in text:
            raise _invalid_value(key, "contains null byte")
        if not is_allowed_rpc_endpoint(text):
            raise ConfigValidationError(
                f"Invalid config value for {key}: endpoint must be https:// "
                "(http:// allowed only for localhost).",
                key=key,
            )
        normalized.append(text)
    return normalized


def assert_trust_kernel_web3_config(repo: ConfigRepository) -> None:
    """EVM JSON-RPC trust kernel plus the integrity root/manifest it attests."""

    web3 = repo.get("trust.web3")
    if web3 is None:
        return
    if not isinstance(web3, Mapping):
        raise _invalid_type("trust.web3", "object")

    ctx = repo.context

    chain_id = repo.require_int("trust.web3.chain_id")
    if chain_id <= 0:
        raise _invalid_value("trust.web3.chain_id", "expected > 0")

    endpoints = _assert_rpc_endpoints(repo)
    _int_in_range(repo, "trust.web3.rpc_quorum", 1, 1, len(endpoints))
    _int_in_range(repo, "trust.web3.max_stale_sec", 180, 1, 86400)
    _choice(repo, "trust.web3.mode", "full", WEB3_MODES)

    controller = repo.require_string("trust.web3.contracts.instance_controller")
    assert_evm_address(controller, "trust.web3.contracts.instance_controller")
    for optional in ("release_registry", "instance_factory"):
        key = f"trust.web3.contracts.{optional}"
        address = _optional_string(repo, key)
        if address is not None:
            assert_evm_address(address, key)

    _int_in_range(repo, "trust.web3.timeout_sec", 5, 1, 60)

    outbox = _optional_string(repo, "trust.web3.tx_outbox_dir")
    if outbox is not None:
        resolved_outbox = repo.resolve_path(outbox)
        assert_secure_readable_dir(resolved_outbox, DirPolicy.tx_outbox_dir(), ctx=ctx)
        if not ctx.fs.writable(resolved_outbox):
            raise SecurityError(
                f"Config directory is not writable: trust.web3.tx_outbox_dir ({resolved_outbox})",
                path=resolved_outbox,
                policy="tx_outbox_dir",
            )

    root_dir = _resolved_absolute(
        repo, repo.require_string("trust.integrity.root_dir"), "trust.integrity.root_dir"
    )
    assert_secure_readable_dir(root_dir, DirPolicy.integrity_root_dir(), ctx=ctx)

    manifest = _resolved_absolute(
        repo, repo.require_string("trust.integrity.manifest"), "trust.integrity.manifest"
    )
    assert_secure_readable_file(manifest, FilePolicy.integrity_manifest(), ctx=ctx)

    _choice(repo, "trust.enforcement", "strict", TRUST_ENFORCEMENT_MODES)


SECTION_VALIDATORS: Final[tuple[tuple[str, str, Callable[[ConfigRepository], None]], ...]] = (
    ("http", "http", assert_http_config),
    ("crypto", "crypto", assert_crypto_config),
    ("db", "db", assert_db_config),
    ("observability", "observability", assert_observability_config),
    ("trust_web3", "trust.web3", assert_trust_kernel_web3_config),
)


def assert_runtime_config(repo: ConfigRepository) -> None:
    """Run every section validator; absent sections are skipped."""

    for _, _, check in SECTION_VALIDATORS:
        check(repo)


__all__ = [
    "DB_INLINE_CREDENTIAL_KEYS",
    "SECTION_VALIDATORS",
    "TRUST_ENFORCEMENT_MODES",
    "WEB3_MODES",
    "assert_crypto_config",
    "assert_db_config",
    "assert_evm_address",
    "assert_http_config",
    "assert_observability_config",
    "assert_runtime_config",
    "assert_trust_kernel_web3_config",
    "is_allowed_rpc_endpoint",
    "is_valid_allowed_host",
    "is_valid_ip_or_cidr",
]
