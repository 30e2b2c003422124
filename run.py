#!/usr/bin/env python
"""
Run one listing ingestion cycle and print a market summary.
Use: python run.py ["free-text filter"]
Needs DATAFINITI_API_KEY in the environment or a .env file.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from suitematch.client import DatafinitiClient
from suitematch.pipeline import IngestionOrchestrator
from suitematch.pipeline.orchestrator import summarize_market


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        return json.dumps(log_obj)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def main(argv: list[str]) -> int:
    configure_logging()
    user_query = " ".join(argv).strip()

    orchestrator = IngestionOrchestrator(DatafinitiClient())
    result = orchestrator.run_cycle(user_query)

    report = {
        "status": result.status.value,
        "listings": len(result.listings),
        "failed_calls": [o.spec.label for o in result.failed_calls],
        "market_summary": summarize_market(result.listings),
    }
    print(json.dumps(report, indent=2))
    return 0 if result.listings else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
