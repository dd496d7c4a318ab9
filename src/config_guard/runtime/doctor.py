"""
config-guard — runtime posture doctor

File: src/config_guard/runtime/doctor.py
Last updated: 2026-10-17

Purpose
- Audit a loaded runtime config and the hosting runtime, producing a severity-tiered report.

What should be included in this file
- ``Finding`` / ``DoctorReport`` value types with dict, JSON, and YAML serialization.
- ``RuntimeDoctor.inspect`` running validators and posture heuristics.

Functional requirements
- ``inspect`` never raises; every failure becomes a finding.
- Absent sections are ``info``; invalid sections are ``error``.
- Tier: ``compat`` without a trust kernel or with any error, ``medium`` with warnings,
  ``strong`` otherwise.

Non-functional requirements
- Findings are appended in a single pass and never mutated afterwards.
- Report output is deterministic for a given filesystem state.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Final

import structlog
import yaml

from config_guard.config.document import thaw
from config_guard.config.repository import ConfigRepository
from config_guard.config.validator import SECTION_VALIDATORS
from config_guard.context import RuntimeContext
from config_guard.runtime.hardening import RuntimeHardening, detect_runtime_hardening
from config_guard.security.path_rules import (
    find_document_root,
    is_likely_windows_mount_path,
    is_temp_path,
)
from config_guard.security.policy import DirPolicy, FilePolicy
from config_guard.security.secure_dir import assert_secure_readable_dir
from config_guard.security.secure_file import assert_secure_readable_file


class Severity(StrEnum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class Tier(StrEnum):
    STRONG = "strong"
    MEDIUM = "medium"
    COMPAT = "compat"


# (config key, document-root collision is an error)
SENSITIVE_PATH_KEYS: Final[tuple[tuple[str, bool], ...]] = (
    ("crypto.keys_dir", True),
    ("crypto.agent.socket_path", True),
    ("db.agent.socket_path", True),
    ("crypto.manifest", False),
    ("observability.storage_dir", False),
    ("trust.web3.tx_outbox_dir", False),
    ("trust.integrity.root_dir", False),
    ("trust.integrity.manifest", False),
)


@dataclass(frozen=True, slots=True)
class Finding:
    severity: Severity
    code: str
    message: str
    meta: Mapping[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.meta:
            row["meta"] = thaw(self.meta)
        return row


@dataclass(frozen=True, slots=True)
class DoctorSummary:
    errors: int = 0
    warnings: int = 0
    infos: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"errors": self.errors, "warnings": self.warnings, "infos": self.infos}


@dataclass(frozen=True, slots=True)
class DoctorReport:
    ok: bool
    tier: Tier
    source_path: str | None
    findings: tuple[Finding, ...] = ()
    summary: DoctorSummary = field(default_factory=DoctorSummary)

    def codes(self) -> list[str]:
        return [finding.code for finding in self.findings]

    def find(self, code: str) -> Finding | None:
        for finding in self.findings:
            if finding.code == code:
                return finding
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "tier": self.tier.value,
            "source_path": self.source_path,
            "findings": [finding.to_dict() for finding in self.findings],
            "summary": self.summary.to_dict(),
        }

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, allow_unicode=True)


class _FindingCollector:
    def __init__(self) -> None:
        self._findings: list[Finding] = []

    def add(
        self,
        severity: Severity,
        code: str,
        message: str,
        meta: Mapping[str, Any] | None = None,
    ) -> None:
        cleaned = {key: value for key, value in (meta or {}).items() if key and not key.isdigit()}
        self._findings.append(Finding(severity, code, message, cleaned or None))

    def findings(self) -> tuple[Finding, ...]:
        return tuple(self._findings)


class RuntimeDoctor:
    """Non-fatal posture auditor for a loaded runtime config."""

    def __init__(
        self,
        ctx: RuntimeContext | None = None,
        hardening: RuntimeHardening | None = None,
        *,
        logger: Any | None = None,
    ) -> None:
        self._ctx = ctx
        self._hardening = hardening
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def inspect(self, repo: ConfigRepository) -> DoctorReport:
        ctx = self._ctx if self._ctx is not None else repo.context
        out = _FindingCollector()

        checks: tuple[tuple[str, Callable[[], None]], ...] = (
            ("source_file", lambda: self._check_source_file(repo, ctx, out)),
            ("validators", lambda: self._check_validators(repo, out)),
            ("trust_kernel", lambda: self._check_trust_kernel_posture(repo, out)),
            ("secrets_boundary", lambda: self._check_secrets_boundary(repo, out)),
            ("tx_outbox", lambda: self._check_tx_outbox(repo, ctx, out)),
            ("path_locations", lambda: self._check_path_locations(repo, ctx, out)),
            ("runtime_hardening", lambda: self._check_runtime_hardening(ctx, out)),
        )
        for name, check in checks:
            try:
                check()
            except Exception as exc:  # noqa: BLE001
                out.add(
                    Severity.ERROR,
                    "doctor_check_failed",
                    f"Doctor check failed unexpectedly: {name}",
                    {"check": name, "error": f"{type(exc).__name__}: {exc}"},
                )

        findings = out.findings()
        summary = DoctorSummary(
            errors=sum(1 for item in findings if item.severity is Severity.ERROR),
            warnings=sum(1 for item in findings if item.severity is Severity.WARN),
            infos=sum(1 for item in findings if item.severity is Severity.INFO),
        )
        tier = self._derive_tier(repo, summary)
        report = DoctorReport(
            ok=summary.errors == 0,
            tier=tier,
            source_path=repo.source_path,
            findings=findings,
            summary=summary,
        )
        self._logger.info(
            "runtime_doctor_report",
            tier=tier.value,
            errors=summary.errors,
            warnings=summary.warnings,
            source_path=repo.source_path,
        )
        return report

    # -- checks ------------------------------------------------------------

    def _check_source_file(
        self, repo: ConfigRepository, ctx: RuntimeContext, out: _FindingCollector
    ) -> None:
        source = repo.source_path
        if source is None:
            out.add(
                Severity.WARN,
                "runtime_config_source_unknown",
                "Runtime config has no known source path (in-memory repo).",
            )
            return
        try:
            assert_secure_readable_file(source, FilePolicy.strict(), ctx=ctx)
        except Exception as exc:  # noqa: BLE001
            out.add(
                Severity.ERROR,
                "runtime_config_file_insecure",
                "Runtime config file is not secure under strict policy.",
                {"path": source, "reason": str(exc)},
            )
            return
        out.add(
            Severity.INFO,
            "runtime_config_file_ok",
            "Runtime config file passes strict file policy.",
            {"path": source},
        )

    def _check_validators(self, repo: ConfigRepository, out: _FindingCollector) -> None:
        for name, key, check in SECTION_VALIDATORS:
            if repo.get(key) is None:
                out.add(
                    Severity.INFO,
                    f"config_missing_{name}",
                    f"Runtime config section not present: {key}",
                )
                continue
            try:
                check(repo)
            except Exception as exc:  # noqa: BLE001
                out.add(
                    Severity.ERROR,
                    f"config_invalid_{name}",
                    f"Runtime config validation failed for: {key}",
                    {"error": str(exc)},
                )
                continue
            out.add(Severity.INFO, f"config_valid_{name}", f"Runtime config section validated: {key}")

    def _check_trust_kernel_posture(self, repo: ConfigRepository, out: _FindingCollector) -> None:
        if repo.get("trust.web3") is None:
            out.add(
                Severity.WARN,
                "trust_kernel_not_configured",
                "Trust kernel (trust.web3) is not configured; integrity checks and "
                "fail-closed enforcement are disabled.",
            )
            return

        endpoints = repo.get("trust.web3.rpc_endpoints")
        count = len(endpoints) if isinstance(endpoints, tuple) else 0
        quorum_raw = repo.get("trust.web3.rpc_quorum", 1)
        quorum: int | None = None
        if isinstance(quorum_raw, int) and not isinstance(quorum_raw, bool):
            quorum = quorum_raw
        elif isinstance(quorum_raw, str) and quorum_raw.strip().isdigit():
            quorum = int(quorum_raw.strip())

        if count > 0 and quorum is not None and (count < 2 or quorum < 2):
            out.add(
                Severity.WARN,
                "rpc_quorum_insecure_for_strict",
                "Strict trust-kernel policy requires at least 2 independent RPC endpoints and "
                "quorum >= 2; with quorum=1 a single RPC can lie about on-chain state.",
                {"rpc_endpoints_count": count, "rpc_quorum": quorum},
            )

    def _check_secrets_boundary(self, repo: ConfigRepository, out: _FindingCollector) -> None:
        if repo.get("trust.web3") is None:
            return

        crypto_agent = repo.get("crypto.agent.socket_path")
        if not isinstance(crypto_agent, str) or not crypto_agent.strip():
            out.add(
                Severity.WARN,
                "crypto_agent_missing",
                "crypto.agent.socket_path is not configured; key material may need to be "
                "readable by the runtime. Prefer secrets-agent mode.",
            )

        db_agent = repo.get("db.agent.socket_path")
        if repo.get("db") is not None and (not isinstance(db_agent, str) or not db_agent.strip()):
            out.add(
                Severity.WARN,
                "db_agent_missing",
                "db.agent.socket_path is not configured; database credentials may be exposed "
                "to the runtime unless a secrets boundary is used.",
            )

    def _check_tx_outbox(
        self, repo: ConfigRepository, ctx: RuntimeContext, out: _FindingCollector
    ) -> None:
        if repo.get("trust.web3") is None:
            return

        outbox = repo.get("trust.web3.tx_outbox_dir")
        if outbox is None or outbox == "":
            out.add(
                Severity.WARN,
                "tx_outbox_not_configured",
                "trust.web3.tx_outbox_dir is not configured; recommended for buffering "
                "on-chain transactions via external relayers.",
            )
            return

        try:
            if not isinstance(outbox, str):
                raise TypeError("trust.web3.tx_outbox_dir must be a string")
            resolved = repo.resolve_path(outbox)
            assert_secure_readable_dir(resolved, DirPolicy.tx_outbox_dir(), ctx=ctx)
        except Exception as exc:  # noqa: BLE001
            out.add(
                Severity.WARN,
                "tx_outbox_invalid",
                "Tx outbox directory is configured but does not satisfy security policy.",
                {"error": str(exc)},
            )
            return

        if not ctx.fs.writable(resolved):
            out.add(
                Severity.WARN,
                "tx_outbox_not_writable",
                "Configured tx outbox directory is not writable by this process.",
                {"path": resolved},
            )
            return
        out.add(
            Severity.INFO,
            "tx_outbox_ok",
            "Tx outbox directory is configured and writable.",
            {"path": resolved},
        )

    def _check_path_locations(
        self, repo: ConfigRepository, ctx: RuntimeContext, out: _FindingCollector
    ) -> None:
        targets: list[tuple[str, str, bool]] = []
        if repo.source_path is not None:
            targets.append(("source", repo.source_path, True))
        for key, sensitive in SENSITIVE_PATH_KEYS:
            raw = repo.get(key)
            if not isinstance(raw, str) or not raw.strip():
                continue
            try:
                resolved = repo.resolve_path(raw)
            except Exception:  # noqa: BLE001
                continue
            targets.append((key, resolved, sensitive))

        roots = list(ctx.detect_document_roots())
        for root in list(roots):
            try:
                real_root = ctx.fs.realpath(root)
            except OSError:
                continue
            if real_root not in roots:
                roots.append(real_root)

        for key, path, sensitive in targets:
            meta = {"key": key, "path": path}
            if is_likely_windows_mount_path(path):
                out.add(
                    Severity.WARN,
                    "path_on_windows_mount",
                    f"{key} is stored on a Windows mount (/mnt/<drive>); prefer a native "
                    "Linux filesystem for security-critical paths.",
                    meta,
                )
            if is_temp_path(path):
                out.add(
                    Severity.WARN,
                    "path_in_temp_dir",
                    f"{key} is inside a temporary directory; contents may be purged or shared.",
                    meta,
                )
            if roots:
                try:
                    real = ctx.fs.realpath(path)
                except OSError:
                    real = path
                root = find_document_root(path, roots) or find_document_root(real, roots)
                if root is not None:
                    out.add(
                        Severity.ERROR if sensitive else Severity.WARN,
                        "path_in_document_root",
                        f"{key} is inside the web document root; it may be web-servable.",
                        {**meta, "document_root": root},
                    )

    def _check_runtime_hardening(self, ctx: RuntimeContext, out: _FindingCollector) -> None:
        hardening = (
            self._hardening if self._hardening is not None else detect_runtime_hardening(ctx)
        )

        if hardening.path_jail is None or not hardening.path_jail.strip():
            out.add(
                Severity.WARN,
                "runtime_path_jail_unset",
                "No path jail is configured; set CONFIG_GUARD_PATH_JAIL to the code root and "
                "config directories.",
            )
        if hardening.remote_include is True:
            out.add(
                Severity.WARN,
                "runtime_remote_include_enabled",
                "Remote code inclusion is enabled for this runtime; disable it.",
            )
        if hardening.archive_readonly is False:
            out.add(
                Severity.WARN,
                "runtime_archive_writes_enabled",
                "Executable archive writes are enabled; make code archives read-only.",
            )
        if hardening.disabled_functions is not None and not any(
            item.strip() for item in hardening.disabled_functions
        ):
            out.add(
                Severity.WARN,
                "runtime_disable_functions_empty",
                "No process-execution primitives are disabled for this runtime.",
            )
        if hardening.unsafe_flags:
            out.add(
                Severity.WARN,
                "runtime_unsafe_interpreter_flag",
                "Unsafe interpreter flags are set in the environment.",
                {"flags": list(hardening.unsafe_flags)},
            )

    @staticmethod
    def _derive_tier(repo: ConfigRepository, summary: DoctorSummary) -> Tier:
        if repo.get("trust.web3") is None or summary.errors:
            return Tier.COMPAT
        if summary.warnings:
            return Tier.MEDIUM
        return Tier.STRONG


__all__ = [
    "DoctorReport",
    "DoctorSummary",
    "Finding",
    "RuntimeDoctor",
    "SENSITIVE_PATH_KEYS",
    "Severity",
    "Tier",
]
