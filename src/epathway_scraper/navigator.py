"""Session bootstrap and screen-by-screen navigation of the ePathway portal.

Every postback must echo the ``__EVENTVALIDATION``/``__VIEWSTATE`` pair
from the previous response. The pair is passed in and returned explicitly;
nothing here keeps it between calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import PortalConfig
from .http_client import HTTPClient
from .logging_config import get_logger
from .models import FormTokens, RunStats, SearchWindow
from .page_model import extract_token, extract_tokens

logger = get_logger("navigator")

DEVELOPMENT_APPLICATIONS_LIST = "ctl00$MainBodyContent$mDataList$ctl03$mDataGrid$ctl03$ctl00"
DATE_LODGED_TAB_TARGET = "ctl00$MainBodyContent$mGeneralEnquirySearchControl$mTabControl$tabControlMenu"
DATE_LODGED_TAB_ARGUMENT = "1"

_SEARCH_CONTROL = "ctl00$MainBodyContent$mGeneralEnquirySearchControl"
_DATE_TAB = f"{_SEARCH_CONTROL}$mTabControl$ctl09"


@dataclass
class PortalSession:
    """The cookie-bearing client plus the portal it talks to."""

    client: HTTPClient
    portal: PortalConfig
    stats: Optional[RunStats] = None


async def bootstrap(session: PortalSession) -> FormTokens:
    """Open the default page and switch the portal to its scripted variant.

    If the default page carries a ``js=`` token it is replayed as a query
    parameter on the same cookie jar, which makes the server serve the
    script-enabled markup for the rest of the session.
    """
    url = session.portal.default_url
    logger.info(f"Retrieving page: {url}")
    response = await session.client.get(url, stats=session.stats)
    body = response.text

    token = extract_token(body)
    if token is not None:
        token_url = f"{url}?js={token}"
        logger.info(f"Retrieving page: {token_url}")
        await session.client.get(token_url, stats=session.stats)
    else:
        logger.debug("No js= token found on the default page")

    return extract_tokens(body)


async def open_enquiry_lists(session: PortalSession) -> FormTokens:
    url = session.portal.enquiry_lists_url
    logger.info(f"Retrieving page: {url}")
    response = await session.client.get(url, stats=session.stats)
    return extract_tokens(response.text)


async def select_development_applications(session: PortalSession, tokens: FormTokens) -> FormTokens:
    logger.info('Retrieving the "Development Applications" search page.')
    response = await session.client.post(
        session.portal.enquiry_lists_url,
        data={
            **tokens.as_form(),
            "__VIEWSTATEENCRYPTED": "",
            "ctl00$MainBodyContent$mContinueButton": "Next",
            "mDataGrid:Column0:Property": DEVELOPMENT_APPLICATIONS_LIST,
        },
        stats=session.stats,
    )
    return extract_tokens(response.text)


async def switch_to_date_lodged_tab(session: PortalSession, tokens: FormTokens) -> FormTokens:
    logger.info('Switching to the "Date Lodged" tab.')
    response = await session.client.post(
        session.portal.enquiry_search_url,
        data={
            "__EVENTARGUMENT": DATE_LODGED_TAB_ARGUMENT,
            "__EVENTTARGET": DATE_LODGED_TAB_TARGET,
            **tokens.as_form(),
        },
        stats=session.stats,
    )
    return extract_tokens(response.text)


async def search_date_range(session: PortalSession, tokens: FormTokens, window: SearchWindow) -> str:
    """Submit the lodgement-date search and return the first results page."""
    dates = window.as_portal_dates()
    logger.info(f"Searching for applications in the date range {dates['from']} to {dates['to']}.")
    response = await session.client.post(
        session.portal.enquiry_search_url,
        data={
            **tokens.as_form(),
            f"{_SEARCH_CONTROL}$mEnquiryListsDropDownList": session.portal.enquiry_list_id,
            f"{_SEARCH_CONTROL}$mSearchButton": "Search",
            f"{_DATE_TAB}$DateSearchRadioGroup": "mLast30RadioButton",
            f"{_DATE_TAB}$mFromDatePicker$dateTextBox": dates["from"],
            f"{_DATE_TAB}$mToDatePicker$dateTextBox": dates["to"],
        },
        stats=session.stats,
    )
    return response.text


async def navigate_to_results(session: PortalSession, window: SearchWindow) -> str:
    """Walk enquiry lists -> Development Applications -> Date Lodged -> search."""
    tokens = await open_enquiry_lists(session)
    tokens = await select_development_applications(session, tokens)
    tokens = await switch_to_date_lodged_tab(session, tokens)
    return await search_date_range(session, tokens, window)
