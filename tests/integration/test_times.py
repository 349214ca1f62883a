import asyncio
from pathlib import Path

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from dmh_scraper.times import (
    discover_start_iso,
    extract_start_from_html,
    first_found,
    start_from_dates_row,
    start_from_jsonld,
    start_from_payload,
)

SEATS_URL = "https://demontforthall.ticketsolve.com/ticketbooth/shows/873645/events/428577/seats"
EVENT_URL = "https://demontforthall.co.uk/events/comedy-night/"


class FakePage:
    """Serves fixture HTML by URL; URLs mapped to None fail to load."""

    def __init__(self, pages):
        self.pages = pages
        self.url = None
        self.visited = []

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.pages.get(url) is None:
            raise PlaywrightError(f"net::ERR_CONNECTION_REFUSED at {url}")
        self.url = url

    async def wait_for_load_state(self, state, timeout=None):
        return None

    async def wait_for_selector(self, selector, timeout=None):
        return None

    async def content(self):
        return self.pages[self.url]

    def on(self, event, handler):
        pass

    def remove_listener(self, event, handler):
        pass


class Recorder:
    def __init__(self):
        self.lines = []

    def __call__(self, message, level="INFO"):
        self.lines.append((level, message))


def test_start_from_dates_row():
    html = Path("tests/fixtures/ticketsolve_seats.html").read_text()
    assert start_from_dates_row(html, 2025, 10, 7) == "2025-10-07T18:30:00.000Z"
    assert start_from_dates_row("<main><p>No time yet</p></main>", 2025, 10, 7) is None


def test_extract_start_prefers_page_time_then_jsonld():
    booking = Path("tests/fixtures/ticketsolve_seats.html").read_text()
    assert extract_start_from_html(booking, 2025, 10, 7) == "2025-10-07T18:30:00.000Z"

    event_page = Path("tests/fixtures/dmh_event_page.html").read_text()
    assert extract_start_from_html(event_page, 2025, 10, 11) == "2025-10-11T19:00:00.000Z"


def test_start_from_jsonld_graph():
    html = """
    <script type="application/ld+json">
    {"@context": "https://schema.org",
     "@graph": [{"@type": "WebPage"}, {"@type": "Event", "startDate": "2025-12-12T14:00"}]}
    </script>
    """
    assert start_from_jsonld(BeautifulSoup(html, "html.parser")) == "2025-12-12T14:00:00.000Z"


def test_start_from_payload():
    payload = '{"performance": {"starts_at": "2025-10-07T19:30:00+01:00"}}'
    assert start_from_payload(payload, 2025, 10, 7) == "2025-10-07T18:30:00.000Z"
    assert start_from_payload('{"date": "2025-10-07", "label": "Doors 19:00"}', 2025, 10, 7) == "2025-10-07T18:00:00.000Z"
    assert start_from_payload('{"label": "Doors 19:00"}', 2025, 10, 7) is None


def test_first_found_skips_empty_results():
    async def after(seconds, value):
        await asyncio.sleep(seconds)
        return value

    async def run():
        slow = after(5, "too late")
        return await first_found(after(0, None), after(0.01, "found"), slow)

    assert asyncio.run(run()) == "found"


def test_discover_start_keeps_known_time():
    start = "2025-11-02T19:30:00.000Z"
    assert asyncio.run(discover_start_iso(None, start, EVENT_URL, SEATS_URL)) == start
    assert asyncio.run(discover_start_iso(None, None, EVENT_URL, SEATS_URL)) is None


def test_discover_start_from_booking_dates_row():
    page = FakePage({SEATS_URL: Path("tests/fixtures/ticketsolve_seats.html").read_text()})
    tickets = SEATS_URL[: -len("/seats")]

    found = asyncio.run(discover_start_iso(page, "2025-10-07T00:00:00.000Z", None, tickets, Recorder()))

    assert found == "2025-10-07T18:30:00.000Z"
    assert page.visited == [SEATS_URL]


def test_discover_start_falls_back_to_event_page():
    page = FakePage({
        SEATS_URL: None,
        EVENT_URL: Path("tests/fixtures/dmh_event_page.html").read_text(),
    })
    log = Recorder()

    found = asyncio.run(discover_start_iso(page, "2025-10-11T00:00:00.000Z", EVENT_URL, SEATS_URL, log))

    assert found == "2025-10-11T19:00:00.000Z"
    assert page.visited == [SEATS_URL, EVENT_URL]
    assert log.lines[0][0] == "WARNING"
    assert "booking page time" in log.lines[0][1]


def test_discover_start_returns_midnight_when_nothing_found():
    page = FakePage({EVENT_URL: "<main><h1>Comedy Night</h1></main>"})
    found = asyncio.run(discover_start_iso(page, "2025-10-11T00:00:00.000Z", EVENT_URL, None, Recorder()))
    assert found == "2025-10-11T00:00:00.000Z"
