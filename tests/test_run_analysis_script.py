from __future__ import annotations

import json

from app.config import AnalysisSettings, RateLimitSettings
from app.services.analysis_orchestrator_service import AnalysisOrchestratorService
from conftest import StaticEvaluator, StaticFetcher
from scripts import run_analysis


def test_prints_scored_result(session_factory, monkeypatch, capsys) -> None:
    orchestrator = AnalysisOrchestratorService(
        fetcher=StaticFetcher(),
        evaluator=StaticEvaluator(),
        session_factory=session_factory,
        analysis_settings=AnalysisSettings(max_analysis_seconds=5, worker_threads=1),
        rate_limit_settings=RateLimitSettings(),
    )
    monkeypatch.setattr(run_analysis, "get_analysis_orchestrator_service", lambda: orchestrator)
    monkeypatch.setattr(run_analysis, "SessionLocal", session_factory)

    exit_code = run_analysis.main(["https://example.com/"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["status"] == "done"
    assert payload["grade"] == "D"
    assert payload["deduplicated"] is False
    assert payload["cwv"] == {"source": "lab"}


def test_reports_invalid_url(session_factory, monkeypatch, capsys) -> None:
    orchestrator = AnalysisOrchestratorService(
        fetcher=StaticFetcher(),
        evaluator=StaticEvaluator(),
        session_factory=session_factory,
        analysis_settings=AnalysisSettings(worker_threads=1),
        rate_limit_settings=RateLimitSettings(),
    )
    monkeypatch.setattr(run_analysis, "get_analysis_orchestrator_service", lambda: orchestrator)
    monkeypatch.setattr(run_analysis, "SessionLocal", session_factory)

    exit_code = run_analysis.main(["not a url"])

    assert exit_code == 1
    assert "error" in json.loads(capsys.readouterr().out)
