"""Iteration over the pages of a search result."""

from __future__ import annotations

from typing import AsyncIterator

from .logging_config import get_logger
from .models import ResultPage
from .navigator import PortalSession
from .page_model import extract_page_count, extract_tokens

logger = get_logger("paginator")

MAX_PAGES = 50
PAGE_BUTTON_TARGET = "ctl00$MainBodyContent$mPagingControl$pageButton_{page}"


async def iter_result_pages(
    session: PortalSession,
    first_page_html: str,
    *,
    max_pages: int = MAX_PAGES,
) -> AsyncIterator[ResultPage]:
    """Yield each results page, fetching the next one only once the caller resumes.

    The page count is read once, from the first page. The counter is bumped
    before a page is handed out, so while page 1 is being processed the
    counter already reads 2; iteration stops when the counter passes the
    page count. No more than ``max_pages`` pages (capped at 50) are ever
    yielded, whatever the portal reports.
    """
    max_pages = min(max_pages, MAX_PAGES)
    html = first_page_html
    tokens = extract_tokens(html)
    page_count = extract_page_count(html)
    page_number = 1
    pages_processed = 0

    while True:
        logger.info(f"Parsing page {page_number} of {page_count}.")
        page_number += 1
        pages_processed += 1
        if session.stats:
            session.stats.pages_processed += 1

        yield ResultPage(page_number=page_number - 1, page_count=page_count, html=html, tokens=tokens)

        if page_number > page_count:
            break
        if pages_processed >= max_pages:
            logger.warning(
                f"Stopping after {pages_processed} pages; the portal reported {page_count}."
            )
            break

        logger.info(f"Retrieving the next page of applications (page {page_number} of {page_count}).")
        response = await session.client.post(
            session.portal.enquiry_summary_view_url,
            params={"PageNumber": page_number},
            data={
                "__EVENTARGUMENT": "",
                "__EVENTTARGET": PAGE_BUTTON_TARGET.format(page=page_number),
                **tokens.as_form(),
            },
            stats=session.stats,
        )
        html = response.text
        tokens = extract_tokens(html)
