"""ePathway scraper pipeline runner.

Drives one scrape pass: bootstrap the portal session, navigate to the
lodgement-date search, walk the result pages and store every accepted
application. Everything runs strictly in sequence on one session.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .collector import ApplicationCollector
from .config import CONFLICT_POLICIES, ScraperConfig
from .database import DevelopmentApplicationDatabase
from .http_client import HTTPClient
from .logging_config import get_logger, setup_logging
from .models import DevelopmentApplication, RunStats
from .navigator import PortalSession, bootstrap, navigate_to_results
from .paginator import iter_result_pages
from .parser_utils import search_window

logger = get_logger("runner")


class RunState(str, Enum):
    BOOTSTRAP = "bootstrap"
    NAVIGATE = "navigate"
    PAGINATE = "paginate"
    DONE = "done"


@dataclass
class RunSummary:
    """Summary of a pipeline run."""

    run_id: int
    run_date: str
    started_at: str
    completed_at: str
    state: str
    pages_processed: int = 0
    http_requests: int = 0
    rows_accepted: int = 0
    records_inserted: int = 0
    records_replaced: int = 0
    records_skipped: int = 0
    records_discarded: int = 0
    dry_run: bool = False
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_stats(
        cls,
        stats: RunStats,
        *,
        run_id: int,
        run_date: date,
        state: RunState,
        dry_run: bool,
    ) -> "RunSummary":
        return cls(
            run_id=run_id,
            run_date=run_date.isoformat(),
            started_at=_timestamp(stats.started_at),
            completed_at=_timestamp(stats.completed_at) if stats.completed_at else "",
            state=state.value,
            pages_processed=stats.pages_processed,
            http_requests=stats.http_requests,
            rows_accepted=stats.rows_accepted,
            records_inserted=stats.records_inserted,
            records_replaced=stats.records_replaced,
            records_skipped=stats.records_skipped,
            records_discarded=stats.records_discarded,
            dry_run=dry_run,
            errors=list(stats.errors),
        )

    def exit_code(self) -> int:
        """Return appropriate exit code based on run status."""
        if self.errors or self.state != RunState.DONE.value:
            return 1
        return 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert summary to dictionary for JSON serialization."""
        return {
            "run_id": self.run_id,
            "run_date": self.run_date,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "state": self.state,
            "pages_processed": self.pages_processed,
            "http_requests": self.http_requests,
            "rows_accepted": self.rows_accepted,
            "records_inserted": self.records_inserted,
            "records_replaced": self.records_replaced,
            "records_skipped": self.records_skipped,
            "records_discarded": self.records_discarded,
            "dry_run": self.dry_run,
            "errors": self.errors,
            "exit_code": self.exit_code(),
        }


def _timestamp(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _run_counts(stats: RunStats) -> Dict[str, int]:
    return {
        "pages_processed": stats.pages_processed,
        "rows_accepted": stats.rows_accepted,
        "records_discarded": stats.records_discarded,
    }


class EPathwayRunner:
    """Main pipeline orchestrator.

    ``BOOTSTRAP -> NAVIGATE -> PAGINATE -> DONE``. Any transport or
    persistence failure stops the run where it is; the ingestion run is
    marked failed and the exception propagates.
    """

    def __init__(
        self,
        config: Optional[ScraperConfig] = None,
        *,
        db: Optional[DevelopmentApplicationDatabase] = None,
        run_date: Optional[date] = None,
        dry_run: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or ScraperConfig()
        self.run_date = run_date or date.today()
        self.dry_run = dry_run
        self.transport = transport
        self.state = RunState.BOOTSTRAP
        self.summary: Optional[RunSummary] = None
        if db is None and not dry_run:
            db = DevelopmentApplicationDatabase(
                self.config.database.path,
                on_conflict=self.config.database.on_conflict,
            )
        self.db = db

    async def run(self) -> RunSummary:
        """Execute one scrape pass and return its summary."""
        stats = RunStats(started_at=_now())
        window = search_window(self.run_date, self.config.search.lookback_months)

        run_id = 0
        metadata: Dict[str, Any] = {
            "run_date": self.run_date.isoformat(),
            "date_from": window.date_from.isoformat(),
            "date_to": window.date_to.isoformat(),
        }
        if self.db is not None and not self.dry_run:
            metadata["on_conflict"] = self.db.on_conflict
            run_id = self.db.start_ingestion_run(metadata=metadata)

        logger.info(f"Starting scrape of {self.config.portal.base_url} for {self.run_date}")
        if self.dry_run:
            logger.info("Dry run mode: applications will not be stored")

        try:
            async with HTTPClient(self.config.http, transport=self.transport) as client:
                session = PortalSession(client=client, portal=self.config.portal, stats=stats)

                self.state = RunState.BOOTSTRAP
                await bootstrap(session)

                self.state = RunState.NAVIGATE
                first_page = await navigate_to_results(session, window)

                self.state = RunState.PAGINATE
                collector = ApplicationCollector(
                    session,
                    run_date=self.run_date,
                    address_source=self.config.search.address_source,
                )
                async for page in iter_result_pages(
                    session,
                    first_page,
                    max_pages=self.config.search.max_pages,
                ):
                    async for application in collector.iter_applications(page):
                        self._store(application, stats, run_id)

                self.state = RunState.DONE

        except Exception as exc:
            stats.completed_at = _now()
            stats.errors.append(f"{type(exc).__name__}: {exc}")
            logger.error(f"Scrape failed during {self.state.value}: {exc}")
            if run_id and self.db is not None:
                self.db.complete_ingestion_run(
                    run_id,
                    status="failed",
                    metadata={**metadata, **_run_counts(stats), "state": self.state.value, "errors": stats.errors},
                )
            self.summary = self._summarize(stats, run_id)
            raise

        stats.completed_at = _now()
        if run_id and self.db is not None:
            self.db.complete_ingestion_run(
                run_id,
                status="completed",
                metadata={**metadata, **_run_counts(stats)},
            )

        summary = self.summary = self._summarize(stats, run_id)
        logger.info(
            f"Run completed: {summary.pages_processed} pages, "
            f"{summary.records_inserted} inserted, "
            f"{summary.records_replaced} replaced, "
            f"{summary.records_skipped} skipped, "
            f"{summary.records_discarded} discarded"
        )
        return summary

    def _summarize(self, stats: RunStats, run_id: int) -> RunSummary:
        return RunSummary.from_stats(
            stats,
            run_id=run_id,
            run_date=self.run_date,
            state=self.state,
            dry_run=self.dry_run,
        )

    def _store(self, application: DevelopmentApplication, stats: RunStats, run_id: int) -> None:
        if self.dry_run or self.db is None:
            logger.info(
                f'    Retrieved: application "{application.council_reference}" '
                f'with address "{application.address}" and description "{application.description}".'
            )
            return
        result = self.db.upsert(application, ingestion_run_id=run_id or None)
        stats.record_outcome(result.status)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the ePathway scraper."""
    parser = argparse.ArgumentParser(
        description="Scrape recent development applications from The Barossa Council ePathway portal"
    )
    parser.add_argument("--config", type=Path, help="Path to YAML configuration (default: config/epathway.yaml)")
    parser.add_argument("--db-path", type=Path, help="Path to the SQLite database (default: data.sqlite)")
    parser.add_argument(
        "--on-conflict",
        choices=CONFLICT_POLICIES,
        help="What to do with applications that are already stored",
    )
    parser.add_argument("--lookback-months", type=int, help="How many months back to search")
    parser.add_argument("--dry-run", action="store_true", help="Scrape without storing anything")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")

    args = parser.parse_args(argv)

    setup_logging(
        log_file=args.log_file,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        config = ScraperConfig(args.config)
        if args.db_path:
            config.database.path = args.db_path
        if args.on_conflict:
            config.database.on_conflict = args.on_conflict
        if args.lookback_months is not None:
            config.search.lookback_months = args.lookback_months
        config.validate()

        runner = EPathwayRunner(config, dry_run=args.dry_run)
        try:
            summary = asyncio.run(runner.run())
        finally:
            if runner.db is not None:
                runner.db.close()
            # a failed run still reports how far it got
            if args.json and runner.summary is not None:
                print(json.dumps(runner.summary.to_dict(), indent=2))

        print("Complete.")
        return summary.exit_code()

    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
