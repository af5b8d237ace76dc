"""Everything that knows the shape of ePathway markup.

Cell positions, hidden-field names and label ids live here so that a
portal redesign only touches this module.
"""

from __future__ import annotations

import re
from typing import List, Optional

from bs4 import BeautifulSoup

from .models import FormTokens, ResultRow

TOKEN_MARKER = ".aspx?js="
PAGE_COUNT_LABEL_ID = "ctl00_MainBodyContent_mPagingControl_pageNumberLabel"
DETAIL_ADDRESS_HEADER = "Formatted Property Address"

# Results table columns.
APPLICATION_NUMBER_CELL = 0
RECEIVED_DATE_CELL = 1
ADDRESS_CELL = 2
DESCRIPTION_CELL = 3
MIN_RESULT_CELLS = 4

# The detail address is the fifth cell of the header's table section.
DETAIL_ADDRESS_CELL = 4

_TRAILING_INTEGER = re.compile(r"[0-9]+$")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def extract_token(html: str) -> Optional[str]:
    """Return the ``js=`` capability token embedded in an inline script.

    The token runs from just after ``.aspx?js=`` to the next single or
    double quote. Scripts without a terminated token are skipped.
    """
    soup = parse_html(html)
    for script in soup.find_all("script"):
        text = script.get_text()
        start = text.find(TOKEN_MARKER)
        if start < 0:
            continue
        start += len(TOKEN_MARKER)
        end = text.replace('"', "'").find("'", start)
        if end > start:
            return text[start:end]
    return None


def _input_value(soup: BeautifulSoup, name: str) -> Optional[str]:
    node = soup.find("input", attrs={"name": name})
    if node is None:
        return None
    return node.get("value")


def extract_tokens(html: str) -> FormTokens:
    """Read ``__EVENTVALIDATION`` and ``__VIEWSTATE``; missing fields become None."""
    soup = parse_html(html)
    return FormTokens(
        event_validation=_input_value(soup, "__EVENTVALIDATION"),
        view_state=_input_value(soup, "__VIEWSTATE"),
    )


def extract_page_count(html: str) -> int:
    """Trailing integer of the paging label ("Page 1 of 3" -> 3), at least 1."""
    soup = parse_html(html)
    label = soup.find(id=PAGE_COUNT_LABEL_ID)
    if label is None:
        return 1
    match = _TRAILING_INTEGER.search(label.get_text().strip())
    if match is None:
        return 1
    return max(1, int(match.group(0)))


def extract_rows(html: str) -> List[ResultRow]:
    """Every table row with at least four direct ``td`` children.

    No filtering beyond the cell count happens here; header and pager rows
    are rejected later by the acceptance rules.
    """
    soup = parse_html(html)
    rows: List[ResultRow] = []
    for table_row in soup.find_all("tr"):
        cells = table_row.find_all("td", recursive=False)
        if len(cells) < MIN_RESULT_CELLS:
            continue
        number_cell = cells[APPLICATION_NUMBER_CELL]
        link = number_cell.find("a", recursive=False)
        rows.append(
            ResultRow(
                application_number=number_cell.get_text().strip(),
                received_date_text=cells[RECEIVED_DATE_CELL].get_text().strip(),
                address_text=cells[ADDRESS_CELL].get_text().strip(),
                description_text=cells[DESCRIPTION_CELL].get_text().strip(),
                detail_href=link.get("href") if link is not None else None,
            )
        )
    return rows


def extract_detail_address(html: str) -> str:
    """Raw address text from a detail page, or "" when it cannot be found."""
    soup = parse_html(html)
    header = next(
        (th for th in soup.find_all("th") if DETAIL_ADDRESS_HEADER in th.get_text()),
        None,
    )
    if header is None or header.parent is None or header.parent.parent is None:
        return ""
    cells = header.parent.parent.find_all("td")
    if len(cells) <= DETAIL_ADDRESS_CELL:
        return ""
    return cells[DETAIL_ADDRESS_CELL].get_text()
