"""Runtime posture inspection: hardening probe and the config doctor."""

from config_guard.runtime.doctor import (
    DoctorReport,
    DoctorSummary,
    Finding,
    RuntimeDoctor,
    Severity,
    Tier,
)
from config_guard.runtime.hardening import RuntimeHardening, detect_runtime_hardening

__all__ = [
    "DoctorReport",
    "DoctorSummary",
    "Finding",
    "RuntimeDoctor",
    "RuntimeHardening",
    "Severity",
    "Tier",
    "detect_runtime_hardening",
]
