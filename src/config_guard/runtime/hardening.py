"""
config-guard — runtime hardening flags probe

File: src/config_guard/runtime/hardening.py
Last updated: 2026-10-17

Purpose
- Describe interpreter-level hardening posture in platform-neutral terms so the doctor can
  report on it without knowing which runtime hosts the application.

Functional requirements
- ``None`` means "not applicable on this runtime" and never produces a finding.
- The Python probe reports the context path jail and unsafe interpreter environment flags.

Non-functional requirements
- Pure inspection of the context; no process state is modified.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from config_guard.context import RuntimeContext, ensure_context

_TRUTHY = frozenset({"1", "on", "yes", "true"})
_FALSY = frozenset({"0", "off", "no", "false"})


@dataclass(frozen=True, slots=True)
class RuntimeHardening:
    """Hardening flags; hosts embedding another runtime may construct this directly."""

    path_jail: str | None = None
    remote_include: bool | None = None
    archive_readonly: bool | None = None
    disabled_functions: tuple[str, ...] | None = None
    unsafe_flags: tuple[str, ...] = ()


def parse_flag(raw: str | None) -> bool | None:
    """ini-style boolean: ``1/on/yes/true``, ``0/off/no/false``, or any integer."""

    if raw is None:
        return None
    text = raw.strip().lower()
    if not text:
        return None
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    if text.isdigit():
        return int(text) != 0
    return None


def unsafe_interpreter_flags(environ: Mapping[str, str]) -> tuple[str, ...]:
    flags: list[str] = []
    if environ.get("PYTHONINSPECT", "").strip():
        flags.append("PYTHONINSPECT")
    breakpoint_hook = environ.get("PYTHONBREAKPOINT")
    if breakpoint_hook is not None and breakpoint_hook.strip() not in {"", "0"}:
        flags.append("PYTHONBREAKPOINT")
    for name in ("PYTHONPATH", "PYTHONSTARTUP"):
        if environ.get(name, "").strip():
            flags.append(name)
    return tuple(flags)


def detect_runtime_hardening(ctx: RuntimeContext | None = None) -> RuntimeHardening:
    ctx = ensure_context(ctx)
    jail = ctx.path_jail
    return RuntimeHardening(
        path_jail=(jail.description or "<predicate>") if jail is not None else None,
        unsafe_flags=unsafe_interpreter_flags(ctx.environ),
    )


__all__ = [
    "RuntimeHardening",
    "detect_runtime_hardening",
    "parse_flag",
    "unsafe_interpreter_flags",
]
