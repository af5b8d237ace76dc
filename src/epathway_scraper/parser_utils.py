"""Normalization helpers for scraped application fields."""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from dateutil.relativedelta import relativedelta

from .models import NO_DESCRIPTION, SearchWindow

_WHITESPACE_RUN = re.compile(r"\s+")
# Day may omit its leading zero, month and year may not.
_PORTAL_DATE = re.compile(r"^([0-9]{1,2})/([0-9]{2})/([0-9]{4})$")
_COUNCIL_REFERENCE = re.compile(r"^[0-9]+")


def collapse_whitespace(value: Optional[str]) -> str:
    """Collapse whitespace runs to single spaces and trim the ends."""
    if not value:
        return ""
    return _WHITESPACE_RUN.sub(" ", value).strip()


def normalize_description(value: Optional[str]) -> str:
    text = (value or "").strip()
    return text if text else NO_DESCRIPTION


def parse_portal_date(value: Optional[str]) -> Optional[date]:
    """Strictly parse a ``D/MM/YYYY`` lodgement date.

    Returns None for anything that is not a real calendar date, for example
    ``31/02/2024`` or ``3/1/2024``.
    """
    if not value:
        return None
    match = _PORTAL_DATE.match(value.strip())
    if match is None:
        return None
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_iso_date(value: Optional[date]) -> str:
    return value.isoformat() if value is not None else ""


def is_council_reference(value: Optional[str]) -> bool:
    """Application numbers start with digits, e.g. ``580/001/18``."""
    return bool(value) and _COUNCIL_REFERENCE.match(value) is not None


def search_window(run_date: date, lookback_months: int) -> SearchWindow:
    """Lodgement window ending on the run date.

    Month arithmetic clamps to the end of shorter months (31 May minus three
    months is 28 or 29 February).
    """
    return SearchWindow(
        date_from=run_date - relativedelta(months=lookback_months),
        date_to=run_date,
    )
