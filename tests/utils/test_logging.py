"""Tests for structlog configuration of engine components."""

import json
import os
import subprocess
import sys
from pathlib import Path

import structlog

from compliance_linker.utils.logging import get_structured_logger, new_session_id

REPO_ROOT = Path(__file__).resolve().parents[2]

ENGINE_ONLY_SCRIPT = """
from compliance_linker.data_management.evidence_store import EvidenceStore
from compliance_linker.data_management.link_store import LinkStore
from compliance_linker.data_management.repositories import StaticIdentityProvider
from compliance_linker.data_management.requirement_store import RequirementStore
from compliance_linker.linking.engine import LinkingEngine

engine = LinkingEngine(
    EvidenceStore(), RequirementStore(), LinkStore(), StaticIdentityProvider("auditor-3")
)
engine._logger.info("engine_ready")
"""


class TestStructuredLogging:
    def test_bound_context(self) -> None:
        session_id = new_session_id()
        logger = get_structured_logger(
            "linking.engine", session_id=session_id, actor_id="auditor-3", component="LinkingEngine"
        )
        context = structlog.get_context(logger)
        assert context["session_id"] == session_id
        assert context["actor_id"] == "auditor-3"
        assert context["component"] == "LinkingEngine"

    def test_engine_logs_to_stderr_without_pipeline(self) -> None:
        env = {**os.environ, "PYTHONPATH": str(REPO_ROOT), "LOG_FORMAT": "json"}
        completed = subprocess.run(
            [sys.executable, "-c", ENGINE_ONLY_SCRIPT],
            capture_output=True,
            text=True,
            env=env,
            cwd=REPO_ROOT,
            check=True,
        )

        assert completed.stdout == ""
        events = [json.loads(line) for line in completed.stderr.splitlines() if line.startswith("{")]
        ready = [event for event in events if event.get("event") == "engine_ready"]
        assert ready and ready[0]["component"] == "LinkingEngine"
