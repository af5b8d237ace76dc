"""Fake ePathway portal for exercising the scraper without a network."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import parse_qs

import httpx

from src.epathway_scraper.config import DEFAULT_BASE_URL

FIXTURES = Path(__file__).parent / "fixtures"
BASE_URL = DEFAULT_BASE_URL
SESSION_COOKIE = "ASP.NET_SessionId=abc123"


def load_html(name: str) -> str:
    with open(FIXTURES / name, "r", encoding="utf-8") as handle:
        return handle.read()


def detail_html(address: Optional[str]) -> str:
    """Detail page whose property table carries ``address`` in its fifth cell."""
    if address is None:
        return "<html><body><table><tr><th>Status</th></tr><tr><td>Lodged</td></tr></table></body></html>"
    return (
        "<html><body>"
        "<table class=\"ContentPanel\">"
        "<tr><th>Lot</th><th>Section</th><th>Plan</th><th>Title</th><th>Formatted Property Address</th></tr>"
        f"<tr><td>1</td><td></td><td>D1234</td><td>CT 5000/100</td><td>{address}</td></tr>"
        "</table>"
        "</body></html>"
    )


DEFAULT_DETAILS: Dict[str, Optional[str]] = {
    "1001": "12 Smith St Nuriootpa SA 5355",
    "1002": "4 High  St\n   Tanunda SA 5352",
    "1003": "7 Murray St Tanunda SA 5352",
    "1004": None,
    "1010": "22 Main St Angaston SA 5353",
    "1020": "3 Kalimna Rd Nuriootpa SA 5355",
}


def form_of(request: httpx.Request) -> Dict[str, str]:
    parsed = parse_qs(request.content.decode("utf-8"), keep_blank_values=True)
    return {key: values[0] for key, values in parsed.items()}


class FakePortal:
    """Routes requests the way the Barossa ePathway site does.

    Every request is recorded in ``requests`` so tests can assert on the
    exact sequence, form fields and cookies that were sent.
    """

    def __init__(
        self,
        *,
        results: Optional[Dict[int, str]] = None,
        details: Optional[Dict[str, Optional[str]]] = None,
        default_page: Optional[str] = None,
    ) -> None:
        self.requests: List[httpx.Request] = []
        self.results = results or {
            1: load_html("results_page1.html"),
            2: load_html("results_page2.html"),
            3: load_html("results_page3.html"),
        }
        self.details = DEFAULT_DETAILS if details is None else details
        self.default_page = default_page if default_page is not None else load_html("default.html")
        self.fail_path: Optional[str] = None

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, suffix: str, method: Optional[str] = None) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.url.path.endswith(suffix) and (method is None or request.method == method)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if self.fail_path and path.endswith(self.fail_path):
            return httpx.Response(500, text="Server Error")

        if path.endswith("/default.aspx"):
            if "js" in request.url.params:
                return httpx.Response(200, text="<html><body>scripted</body></html>")
            return httpx.Response(
                200,
                text=self.default_page,
                headers={"Set-Cookie": f"{SESSION_COOKIE}; path=/"},
            )

        if path.endswith("/GeneralEnquiry/EnquiryLists.aspx"):
            if request.method == "GET":
                return httpx.Response(200, text=load_html("enquiry_lists.html"))
            return httpx.Response(302, headers={"Location": f"{BASE_URL}/GeneralEnquiry/EnquirySearch.aspx"})

        if path.endswith("/GeneralEnquiry/EnquirySearch.aspx"):
            if request.method == "GET":
                return httpx.Response(200, text=load_html("enquiry_search.html"))
            if "__EVENTTARGET" in form_of(request):
                return httpx.Response(200, text=load_html("date_lodged_tab.html"))
            return httpx.Response(200, text=self.results[1])

        if path.endswith("/GeneralEnquiry/EnquirySummaryView.aspx"):
            page = int(request.url.params["PageNumber"])
            return httpx.Response(200, text=self.results.get(page, self.results[max(self.results)]))

        if path.endswith("/GeneralEnquiry/EnquiryDetailView.aspx"):
            return httpx.Response(200, text=detail_html(self.details.get(request.url.params["Id"])))

        return httpx.Response(404, text="Not Found")
