"""
config-guard — unit tests for the runtime doctor

File: tests/unit/runtime/test_doctor.py
Last updated: 2026-10-17

Purpose
- Verify posture findings, severities, tier derivation and report serialization.

What this test file should cover
- In-memory vs file-backed repositories; section validation outcomes.
- Trust-kernel, secrets-boundary, tx-outbox, path-location and hardening findings.
- ``inspect`` never raising, and JSON/YAML report output.

Functional requirements
- Offline only; the in-memory filesystem provides every directory.

Non-functional requirements
- Deterministic.
"""

from __future__ import annotations

import json
from typing import Any

import yaml

from config_guard.config.repository import ConfigRepository
from config_guard.context import PathJail, RuntimeContext
from config_guard.runtime.doctor import DoctorReport, RuntimeDoctor, Severity, Tier
from config_guard.runtime.hardening import RuntimeHardening
from config_guard.security.fakefs import FakeFilesystem

CONFIG = "/etc/config-guard/config.runtime.json"
CONTROLLER = "0x" + "cd" * 20
OUTBOX = "/var/lib/config-guard/outbox"


class _RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def info(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))


def _fs() -> FakeFilesystem:
    fs = FakeFilesystem(euid=1000)
    fs.add_dir("/etc/config-guard", mode=0o750, uid=0)
    fs.add_dir("/srv/app", mode=0o755, uid=0)
    fs.add_file("/srv/app/integrity.json", b"{}", mode=0o644, uid=0)
    fs.add_dir("/var/lib/config-guard", mode=0o750, uid=0)
    fs.add_dir(OUTBOX, mode=0o770, uid=1000)
    return fs


def _ctx(fs: FakeFilesystem, **kwargs: Any) -> RuntimeContext:
    kwargs.setdefault("environ", {})
    kwargs.setdefault("path_jail", PathJail.from_prefixes(["/"]))
    return RuntimeContext(fs=fs, **kwargs)


def _strong_payload(**web3_overrides: Any) -> dict[str, Any]:
    web3: dict[str, Any] = {
        "chain_id": 10,
        "rpc_endpoints": ["https://rpc-a.example.org", "https://rpc-b.example.org"],
        "rpc_quorum": 2,
        "contracts": {"instance_controller": CONTROLLER},
        "tx_outbox_dir": OUTBOX,
    }
    web3.update(web3_overrides)
    return {
        "trust": {
            "web3": {key: value for key, value in web3.items() if value is not None},
            "integrity": {"root_dir": "/srv/app", "manifest": "/srv/app/integrity.json"},
        },
        "crypto": {"agent": {"socket_path": "/var/lib/config-guard/keys.sock"}},
    }


def _file_repo(fs: FakeFilesystem, payload: dict[str, Any], **ctx_kwargs: Any) -> ConfigRepository:
    fs.add_file(CONFIG, json.dumps(payload), mode=0o600, uid=1000)
    return ConfigRepository.from_json_file(CONFIG, ctx=_ctx(fs, **ctx_kwargs))


def _severity(report: DoctorReport, code: str) -> Severity:
    finding = report.find(code)
    assert finding is not None, f"{code} not in {report.codes()}"
    return finding.severity


def test_strong_configuration_has_no_warnings() -> None:
    report = RuntimeDoctor().inspect(_file_repo(_fs(), _strong_payload()))

    assert report.codes() == [
        "runtime_config_file_ok",
        "config_missing_http",
        "config_valid_crypto",
        "config_missing_db",
        "config_missing_observability",
        "config_valid_trust_web3",
        "tx_outbox_ok",
    ]
    assert report.tier is Tier.STRONG
    assert report.ok
    assert report.source_path == CONFIG
    assert report.summary.to_dict() == {"errors": 0, "warnings": 0, "infos": 7}


def test_in_memory_repo_without_trust_kernel_is_compat() -> None:
    repo = ConfigRepository.from_mapping({}, ctx=_ctx(FakeFilesystem(), path_jail=None))

    report = RuntimeDoctor().inspect(repo)

    assert report.codes() == [
        "runtime_config_source_unknown",
        "config_missing_http",
        "config_missing_crypto",
        "config_missing_db",
        "config_missing_observability",
        "config_missing_trust_web3",
        "trust_kernel_not_configured",
        "runtime_path_jail_unset",
    ]
    assert report.ok
    assert report.tier is Tier.COMPAT
    assert report.summary.warnings == 3
    assert report.source_path is None


def test_missing_quorum_defaults_to_one_and_warns() -> None:
    report = RuntimeDoctor().inspect(_file_repo(_fs(), _strong_payload(rpc_quorum=None)))

    finding = report.find("rpc_quorum_insecure_for_strict")
    assert finding is not None
    assert finding.severity is Severity.WARN
    assert finding.meta == {"rpc_endpoints_count": 2, "rpc_quorum": 1}
    assert report.tier is Tier.MEDIUM
    assert report.ok


def test_single_endpoint_warns_even_with_valid_quorum() -> None:
    payload = _strong_payload(rpc_endpoints=["https://rpc-a.example.org"], rpc_quorum=1)

    report = RuntimeDoctor().inspect(_file_repo(_fs(), payload))

    assert _severity(report, "rpc_quorum_insecure_for_strict") is Severity.WARN


def test_invalid_section_is_an_error_and_forces_compat() -> None:
    fs = _fs()
    payload = _strong_payload()
    payload["http"] = {"allowed_hosts": ["https://example.org"]}
    repo = ConfigRepository(payload, source_path=CONFIG, ctx=_ctx(fs))
    fs.add_file(CONFIG, b"{}", mode=0o600, uid=1000)

    report = RuntimeDoctor().inspect(repo)

    assert _severity(report, "config_invalid_http") is Severity.ERROR
    finding = report.find("config_invalid_http")
    assert finding is not None and finding.meta is not None
    assert "allowed_hosts" in finding.meta["error"]
    assert not report.ok
    assert report.tier is Tier.COMPAT


def test_insecure_source_file_is_an_error() -> None:
    fs = _fs()
    repo = _file_repo(fs, _strong_payload())
    fs.chmod(CONFIG, 0o644)

    report = RuntimeDoctor().inspect(repo)

    finding = report.find("runtime_config_file_insecure")
    assert finding is not None
    assert finding.severity is Severity.ERROR
    assert "world-readable" in finding.meta["reason"]


def test_secrets_boundary_warnings() -> None:
    fs = _fs()
    payload = _strong_payload()
    del payload["crypto"]
    payload["db"] = {"host": "db"}
    repo = ConfigRepository(payload, source_path=CONFIG, ctx=_ctx(fs))
    fs.add_file(CONFIG, b"{}", mode=0o600, uid=1000)

    report = RuntimeDoctor().inspect(repo)

    assert _severity(report, "crypto_agent_missing") is Severity.WARN
    assert _severity(report, "db_agent_missing") is Severity.WARN
    assert _severity(report, "config_invalid_db") is Severity.ERROR
    assert _severity(report, "config_missing_crypto") is Severity.INFO


def test_tx_outbox_findings() -> None:
    not_configured = RuntimeDoctor().inspect(
        _file_repo(_fs(), _strong_payload(tx_outbox_dir=None))
    )
    assert _severity(not_configured, "tx_outbox_not_configured") is Severity.WARN

    fs = _fs()
    repo = _file_repo(fs, _strong_payload())
    fs.deny_write(OUTBOX)
    not_writable = RuntimeDoctor().inspect(repo)
    assert _severity(not_writable, "tx_outbox_not_writable") is Severity.WARN

    fs.deny_write(OUTBOX, False)
    fs.chmod(OUTBOX, 0o777)
    invalid = RuntimeDoctor().inspect(repo)
    assert _severity(invalid, "tx_outbox_invalid") is Severity.WARN
    assert _severity(invalid, "config_invalid_trust_web3") is Severity.ERROR


def test_document_root_collisions_are_errors_for_secrets_and_warnings_otherwise() -> None:
    fs = FakeFilesystem()
    repo = ConfigRepository.from_mapping(
        {
            "crypto": {"keys_dir": "/var/www/keys", "agent": {"socket_path": "/var/www/agent.sock"}},
            "observability": {"storage_dir": "/var/www/obs"},
        },
        ctx=_ctx(fs, document_roots=("/var/www",)),
    )

    report = RuntimeDoctor().inspect(repo)

    collisions = {
        finding.meta["key"]: finding.severity
        for finding in report.findings
        if finding.code == "path_in_document_root" and finding.meta is not None
    }
    assert collisions == {
        "crypto.keys_dir": Severity.ERROR,
        "crypto.agent.socket_path": Severity.ERROR,
        "observability.storage_dir": Severity.WARN,
    }


def test_temp_and_windows_mount_locations_warn() -> None:
    repo = ConfigRepository.from_mapping(
        {
            "observability": {"storage_dir": "/mnt/c/obs"},
            "trust": {"integrity": {"root_dir": "/tmp/code", "manifest": "relative.json"}},
        },
        ctx=_ctx(FakeFilesystem()),
    )

    report = RuntimeDoctor().inspect(repo)

    mounts = [f.meta["key"] for f in report.findings if f.code == "path_on_windows_mount" and f.meta]
    temps = [f.meta["key"] for f in report.findings if f.code == "path_in_temp_dir" and f.meta]
    assert mounts == ["observability.storage_dir"]
    assert temps == ["trust.integrity.root_dir"]


def test_runtime_hardening_findings() -> None:
    hardening = RuntimeHardening(
        path_jail=" ",
        remote_include=True,
        archive_readonly=False,
        disabled_functions=(" ",),
        unsafe_flags=("PYTHONINSPECT",),
    )
    repo = ConfigRepository.from_mapping({}, ctx=_ctx(FakeFilesystem()))

    report = RuntimeDoctor(hardening=hardening).inspect(repo)

    for code in (
        "runtime_path_jail_unset",
        "runtime_remote_include_enabled",
        "runtime_archive_writes_enabled",
        "runtime_disable_functions_empty",
        "runtime_unsafe_interpreter_flag",
    ):
        assert _severity(report, code) is Severity.WARN
    flags = report.find("runtime_unsafe_interpreter_flag")
    assert flags is not None and flags.meta == {"flags": ["PYTHONINSPECT"]}


def test_not_applicable_hardening_flags_produce_no_findings() -> None:
    repo = ConfigRepository.from_mapping({}, ctx=_ctx(FakeFilesystem()))

    report = RuntimeDoctor(hardening=RuntimeHardening(path_jail="/srv")).inspect(repo)

    hardening_codes = [
        code
        for code in report.codes()
        if code.startswith("runtime_") and code != "runtime_config_source_unknown"
    ]
    assert hardening_codes == []


def test_unsafe_interpreter_flags_come_from_context_environment() -> None:
    repo = ConfigRepository.from_mapping(
        {}, ctx=_ctx(FakeFilesystem(), environ={"PYTHONBREAKPOINT": "remote_pdb.set_trace"})
    )

    report = RuntimeDoctor().inspect(repo)

    flags = report.find("runtime_unsafe_interpreter_flag")
    assert flags is not None and flags.meta == {"flags": ["PYTHONBREAKPOINT"]}


class _ExplodingHardening:
    @property
    def path_jail(self) -> str:
        raise RuntimeError("probe failed")


def test_inspect_never_raises() -> None:
    repo = ConfigRepository.from_mapping({}, ctx=_ctx(FakeFilesystem()))

    report = RuntimeDoctor(hardening=_ExplodingHardening()).inspect(repo)  # type: ignore[arg-type]

    finding = report.find("doctor_check_failed")
    assert finding is not None
    assert finding.severity is Severity.ERROR
    assert finding.meta == {"check": "runtime_hardening", "error": "RuntimeError: probe failed"}
    assert not report.ok


def test_explicit_doctor_context_overrides_repository_context() -> None:
    repo = ConfigRepository.from_mapping({}, ctx=_ctx(FakeFilesystem(), path_jail=None))

    report = RuntimeDoctor(ctx=_ctx(FakeFilesystem())).inspect(repo)

    assert "runtime_path_jail_unset" not in report.codes()


def test_report_serialization_round_trips() -> None:
    logger = _RecordingLogger()
    report = RuntimeDoctor(logger=logger).inspect(_file_repo(_fs(), _strong_payload()))

    as_dict = report.to_dict()

    assert as_dict["tier"] == "strong"
    assert as_dict["findings"][0] == {
        "severity": "info",
        "code": "runtime_config_file_ok",
        "message": "Runtime config file passes strict file policy.",
        "meta": {"path": CONFIG},
    }
    assert "meta" not in as_dict["findings"][1]
    assert json.loads(report.to_json()) == as_dict
    assert yaml.safe_load(report.to_yaml()) == as_dict
    assert logger.events == [
        (
            "runtime_doctor_report",
            {"tier": "strong", "errors": 0, "warnings": 0, "source_path": CONFIG},
        )
    ]
