"""
config-guard — redaction of secrets in config dumps and log fields

File: src/config_guard/security/redaction.py
Last updated: 2026-10-17

Purpose
- Mask secret-looking values before a config tree or a log event leaves the process.

What should be included in this file
- Sensitive-key classification (exact names, prefixes, suffixes; camelCase aware).
- Text rules for inline credentials (DSN userinfo, bearer tokens, PEM private keys).
- Deterministic deep redaction over mappings and sequences.

Functional requirements
- Must never return an input secret value verbatim for a sensitive key.
- Must not mutate its input.

Non-functional requirements
- Deterministic output (mapping keys sorted) so redacted dumps diff cleanly.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

REDACTED_VALUE: Final[str] = "***REDACTED***"

SENSITIVE_KEYS: Final[frozenset[str]] = frozenset(
    {
        "api_key",
        "apikey",
        "authorization",
        "client_secret",
        "credential",
        "credentials",
        "dsn",
        "pass",
        "passphrase",
        "password",
        "passwd",
        "private_key",
        "secret",
        "secret_key",
        "token",
    }
)

_SENSITIVE_SUFFIXES: Final[tuple[str, ...]] = (
    "_api_key",
    "_dsn",
    "_key_material",
    "_passphrase",
    "_password",
    "_private_key",
    "_secret",
    "_token",
)

_SENSITIVE_PREFIXES: Final[tuple[str, ...]] = (
    "password_",
    "private_key_",
    "secret_",
)

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

# (pattern, group holding the secret or None for the whole match)
_TEXT_RULES: Final[tuple[tuple[re.Pattern[str], int | None], ...]] = (
    (
        re.compile(
            r"-----BEGIN(?: [A-Z0-9]+)* PRIVATE KEY-----[\s\S]+?-----END(?: [A-Z0-9]+)* PRIVATE KEY-----"
        ),
        None,
    ),
    (re.compile(r"(?i)(\bbearer\s+)([A-Za-z0-9\-._~+/=]{8,})"), 2),
    (re.compile(r"([a-zA-Z][a-zA-Z0-9+.-]*://[^:/@\s]+:)([^@\s]+)(@)"), 2),
    (
        re.compile(
            r"(?i)(\b(?:password|passwd|pass|secret|api[_-]?key|token)\b\s*[:=]\s*[\"']?)"
            r"([^\s;\"']{4,})"
        ),
        2,
    ),
)


def normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def is_sensitive_key(key: str) -> bool:
    normalized = normalize_key(key)
    if not normalized:
        return False
    if normalized in SENSITIVE_KEYS:
        return True
    if normalized.endswith(_SENSITIVE_SUFFIXES):
        return True
    return normalized.startswith(_SENSITIVE_PREFIXES)


def redact_text(text: str) -> str:
    """Mask inline credentials inside a free-form string."""

    redacted = text
    for pattern, group in _TEXT_RULES:
        if group is None:
            redacted = pattern.sub(REDACTED_VALUE, redacted)
            continue
        redacted = pattern.sub(
            lambda match, g=group: _replace_group(match, g),
            redacted,
        )
    return redacted


def _replace_group(match: re.Match[str], group: int) -> str:
    full = match.group(0)
    start, end = match.span(group)
    offset = match.start(0)
    return f"{full[: start - offset]}{REDACTED_VALUE}{full[end - offset :]}"


def redact_structure(value: object) -> object:
    """Return a deep-redacted plain copy (``dict`` / ``list``) of ``value``."""

    return _redact(value, seen=set())


def _redact(value: object, *, seen: set[int]) -> object:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, Mapping):
        marker = id(value)
        if marker in seen:
            return REDACTED_VALUE
        seen.add(marker)
        try:
            out: dict[str, object] = {}
            for key in sorted(value, key=str):
                key_name = str(key)
                item = value[key]
                if is_sensitive_key(key_name) and item not in (None, ""):
                    out[key_name] = REDACTED_VALUE
                else:
                    out[key_name] = _redact(item, seen=seen)
            return out
        finally:
            seen.discard(marker)
    if isinstance(value, (list, tuple)):
        marker = id(value)
        if marker in seen:
            return REDACTED_VALUE
        seen.add(marker)
        try:
            return [_redact(item, seen=seen) for item in value]
        finally:
            seen.discard(marker)
    return redact_text(str(value))


__all__ = [
    "REDACTED_VALUE",
    "SENSITIVE_KEYS",
    "is_sensitive_key",
    "normalize_key",
    "redact_structure",
    "redact_text",
]
