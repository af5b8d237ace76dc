"""Turns results pages into normalized development applications."""

from __future__ import annotations

from datetime import date
from typing import AsyncIterator, Optional
from urllib.parse import urljoin

from .logging_config import get_logger
from .models import DevelopmentApplication, ResultPage, ResultRow
from .navigator import PortalSession
from .page_model import extract_detail_address, extract_rows
from .parser_utils import (
    collapse_whitespace,
    format_iso_date,
    is_council_reference,
    normalize_description,
    parse_portal_date,
)

logger = get_logger("collector")


class ApplicationCollector:
    """Extracts accepted rows from a results page and resolves their addresses.

    With ``address_source="detail"`` every accepted row costs one extra POST
    to its detail page, on the same session, to read the full address (the
    results table omits suburb, state and post code). ``"inline"`` uses the
    results table's address cell instead.
    """

    def __init__(
        self,
        session: PortalSession,
        *,
        run_date: date,
        address_source: str = "detail",
    ) -> None:
        self.session = session
        self.run_date = run_date
        self.address_source = address_source

    def accept_row(self, row: ResultRow) -> bool:
        if not is_council_reference(row.application_number):
            return False
        if parse_portal_date(row.received_date_text) is None:
            return False
        if self.address_source == "inline" and not row.address_text:
            return False
        return True

    async def iter_applications(self, page: ResultPage) -> AsyncIterator[DevelopmentApplication]:
        """Yield applications one at a time, in table order.

        Detail pages are fetched lazily so each record can be stored before
        the next request goes out.
        """
        stats = self.session.stats
        for row in extract_rows(page.html):
            if not self.accept_row(row):
                continue
            if stats:
                stats.rows_accepted += 1

            address = await self.resolve_address(row)
            if not address:
                logger.warning(
                    f'    Discarded: application "{row.application_number}" has no resolvable address.'
                )
                if stats:
                    stats.records_discarded += 1
                continue

            yield self.build_application(row, address)

    async def resolve_address(self, row: ResultRow) -> str:
        if self.address_source == "inline":
            return collapse_whitespace(row.address_text)
        if not row.detail_href:
            return ""
        return await self.fetch_detail_address(self.detail_url(row.detail_href))

    def detail_url(self, href: str) -> str:
        return urljoin(self.session.portal.general_enquiry_url, href)

    async def fetch_detail_address(self, url: str) -> str:
        logger.debug(f"Retrieving detail page: {url}")
        response = await self.session.client.post(url, stats=self.session.stats)
        return collapse_whitespace(extract_detail_address(response.text))

    def build_application(self, row: ResultRow, address: str) -> DevelopmentApplication:
        portal = self.session.portal
        received: Optional[date] = parse_portal_date(row.received_date_text)
        return DevelopmentApplication(
            council_reference=row.application_number,
            address=address,
            description=normalize_description(row.description_text),
            info_url=portal.default_url,
            comment_url=portal.comment_url,
            date_scraped=self.run_date.isoformat(),
            date_received=format_iso_date(received),
        )
