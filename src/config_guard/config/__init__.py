"""
config-guard config package public API.

File: src/config_guard/config/__init__.py
Last updated: 2026-10-17

Purpose
- Export the repository, bootstrap scanner, holder, validators and installer.

Functional requirements
- Fail fast with clear load/validation/security errors.

Non-functional requirements
- Keep import-time surface small and deterministic.
"""

from config_guard.config.bootstrap import (
    ScanResult,
    default_candidate_paths,
    format_scan_failure,
    load_first_available,
    scan_first_available,
    try_load_first_available,
)
from config_guard.config.document import JsonKind, expect, freeze, thaw
from config_guard.config.holder import ConfigHolder
from config_guard.config.installer import (
    CandidateAnalysis,
    CandidateStatus,
    InstallResult,
    Recommendation,
    RuntimeConfigInstaller,
)
from config_guard.config.repository import ConfigRepository, assert_outside_document_root
from config_guard.config.validator import (
    SECTION_VALIDATORS,
    assert_crypto_config,
    assert_db_config,
    assert_http_config,
    assert_observability_config,
    assert_runtime_config,
    assert_trust_kernel_web3_config,
)

__all__ = [
    "CandidateAnalysis",
    "CandidateStatus",
    "ConfigHolder",
    "ConfigRepository",
    "InstallResult",
    "JsonKind",
    "Recommendation",
    "RuntimeConfigInstaller",
    "SECTION_VALIDATORS",
    "ScanResult",
    "assert_crypto_config",
    "assert_db_config",
    "assert_http_config",
    "assert_observability_config",
    "assert_outside_document_root",
    "assert_runtime_config",
    "assert_trust_kernel_web3_config",
    "default_candidate_paths",
    "expect",
    "format_scan_failure",
    "freeze",
    "load_first_available",
    "scan_first_available",
    "thaw",
    "try_load_first_available",
]
