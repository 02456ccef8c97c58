"""Coverage report storage.

Generated LinkingReports are kept as point-in-time snapshots so coverage
can be compared across audits. Reports are immutable once saved.

Usage:
    store = ReportStore()
    await store.save_report(report)
    latest = await store.latest("factory-7")
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

from compliance_linker.data_management.schemas import LinkingReport
from compliance_linker.errors import StoreError
from compliance_linker.utils.logging import get_structured_logger


class ReportStore:
    """Storage for generated coverage reports.

    Data structure:
    {
        factory_id: [LinkingReport, ...],   # in generation order
        ...
    }
    """

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        """Initialize ReportStore.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._reports: dict[str, list[LinkingReport]] = {}
        self._lock = asyncio.Lock()
        self._persistence_path = Path(persistence_path) if persistence_path else None
        self._logger = get_structured_logger("data_management.report_store", component="ReportStore")

        if self._persistence_path and self._persistence_path.exists():
            self._load_from_file()

    async def save_report(self, report: LinkingReport) -> str:
        """Save a generated report.

        Args:
            report: LinkingReport snapshot.

        Returns:
            The report_id.
        """
        async with self._lock:
            self._reports.setdefault(report.factory_id, []).append(report)
            self._logger.info(
                "report_saved",
                report_id=report.report_id,
                factory_id=report.factory_id,
                overall_coverage=report.coverage.overall,
            )
            if self._persistence_path:
                self._save_to_file()
            return report.report_id

    async def list_reports(self, factory_id: str) -> list[LinkingReport]:
        async with self._lock:
            return list(self._reports.get(factory_id, []))

    async def latest(self, factory_id: str) -> Optional[LinkingReport]:
        """Most recently saved report for a factory."""
        async with self._lock:
            reports = self._reports.get(factory_id, [])
            return reports[-1] if reports else None

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        if not self._persistence_path:
            return
        try:
            self._persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data: dict[str, Any] = {
                fid: [r.model_dump(mode="json") for r in reports]
                for fid, reports in self._reports.items()
            }
            with open(self._persistence_path, "w") as f:
                json.dump(data, f, indent=2, default=str)
        except OSError as e:
            self._logger.error("persistence_failed", error=str(e))
            raise StoreError(f"Failed to persist reports: {e}") from e

    def _load_from_file(self) -> None:
        """Load reports from JSON file (synchronous)."""
        try:
            with open(self._persistence_path, "r") as f:
                data = json.load(f)
            self._reports = {
                fid: [LinkingReport.model_validate(r) for r in reports]
                for fid, reports in data.items()
            }
        except (OSError, ValueError) as e:
            self._logger.error("load_failed", error=str(e))
            self._reports = {}
