"""Data models for the ePathway scraper."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional


NO_DESCRIPTION = "No description provided"


@dataclass
class DevelopmentApplication:
    """A normalized development application ready for the ``data`` table.

    One instance is built per accepted results-table row, handed to the
    database once and then discarded.
    """

    council_reference: str
    address: str
    description: str
    info_url: str
    date_scraped: str
    date_received: str = ""
    comment_url: Optional[str] = None
    on_notice_from: Optional[str] = None
    on_notice_to: Optional[str] = None

    def to_db_params(self) -> Dict[str, Any]:
        """Convert to column values for DevelopmentApplicationDatabase.upsert()."""
        return {
            "council_reference": self.council_reference,
            "address": self.address,
            "description": self.description,
            "info_url": self.info_url,
            "comment_url": self.comment_url,
            "date_scraped": self.date_scraped,
            "date_received": self.date_received,
            "on_notice_from": self.on_notice_from,
            "on_notice_to": self.on_notice_to,
        }


@dataclass(frozen=True)
class FormTokens:
    """Hidden ASP.NET form state echoed back on the next postback.

    The values are opaque; they are never inspected, only relayed.
    """

    event_validation: Optional[str] = None
    view_state: Optional[str] = None

    def as_form(self) -> Dict[str, str]:
        return {
            "__EVENTVALIDATION": self.event_validation or "",
            "__VIEWSTATE": self.view_state or "",
        }


@dataclass
class ResultRow:
    """Raw text pulled from one results-table row."""

    application_number: str
    received_date_text: str
    address_text: str
    description_text: str
    detail_href: Optional[str] = None


@dataclass
class ResultPage:
    """One page of search results together with the tokens it carried."""

    page_number: int
    page_count: int
    html: str
    tokens: FormTokens


@dataclass
class RunStats:
    """Counters for a single scraper run."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    http_requests: int = 0
    retry_attempts: int = 0
    pages_processed: int = 0
    rows_accepted: int = 0
    records_inserted: int = 0
    records_replaced: int = 0
    records_skipped: int = 0
    records_discarded: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def record_outcome(self, status: str) -> None:
        if status == "inserted":
            self.records_inserted += 1
        elif status == "replaced":
            self.records_replaced += 1
        elif status == "skipped":
            self.records_skipped += 1


@dataclass
class SearchWindow:
    """Inclusive lodgement-date range submitted to the portal."""

    date_from: date
    date_to: date

    def as_portal_dates(self) -> Dict[str, str]:
        return {
            "from": self.date_from.strftime("%d/%m/%Y"),
            "to": self.date_to.strftime("%d/%m/%Y"),
        }
