"""Linking components: selection, engine, status, coverage and verification."""

from compliance_linker.linking.coverage import CoverageCalculator, coverage_percent
from compliance_linker.linking.engine import LinkingEngine
from compliance_linker.linking.locks import EvidenceLockRegistry
from compliance_linker.linking.selection import SelectionManager
from compliance_linker.linking.status import StatusResolver, derive_status
from compliance_linker.linking.verification import VerificationWorkflow

__all__ = [
    "CoverageCalculator",
    "EvidenceLockRegistry",
    "LinkingEngine",
    "SelectionManager",
    "StatusResolver",
    "VerificationWorkflow",
    "coverage_percent",
    "derive_status",
]
