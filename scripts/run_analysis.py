"""
Run one page analysis from the CLI and print the stored result.
"""

from __future__ import annotations

import argparse
import json

from app.config import ClientTier
from app.domain.errors import AnalysisError
from app.services.analysis_orchestrator_service import (
    ThreadPoolTaskExecutor,
    get_analysis_orchestrator_service,
)
from db.session import SessionLocal


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Analyze one URL and print the scored result.")
    parser.add_argument("url", help="Absolute http(s) URL to analyze.")
    parser.add_argument(
        "--client-id",
        dest="client_id",
        default="cli",
        help="Client id charged against the hourly quota.",
    )
    args = parser.parse_args(argv)

    orchestrator = get_analysis_orchestrator_service()
    executor = ThreadPoolTaskExecutor(max_workers=1)
    try:
        with SessionLocal() as db:
            submission = orchestrator.submit(
                db=db,
                executor=executor,
                url=args.url,
                client_id=args.client_id,
                client_tier=ClientTier.AUTHENTICATED,
                user_agent="seo-inspector-cli",
            )
        executor.shutdown(wait=True)

        with SessionLocal() as db:
            view = orchestrator.get_task(db=db, task_id=submission.task_id)
    except AnalysisError as exc:
        print(json.dumps({"error": str(exc)}, indent=2))
        return 1
    finally:
        executor.shutdown(wait=False)
        orchestrator.shutdown()

    payload = {
        "task_id": str(view.task_id),
        "deduplicated": submission.deduplicated,
        "status": view.status,
        "final_url": view.final_url,
        "overall_score": view.overall_score,
        "grade": view.grade,
        "warnings": view.warnings,
        "cwv": view.cwv,
        "error_message": view.error_message,
        "checks": [group.to_dict() for group in view.checks],
    }
    print(json.dumps(payload, indent=2))
    return 0 if view.status == "done" else 1


if __name__ == "__main__":
    raise SystemExit(main())
