import asyncio
import json
from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError

from dmh_scraper.availability import resolve_availability
from dmh_scraper.ticketsolve import BookingPage

TICKETS_URL = "https://demontforthall.ticketsolve.com/ticketbooth/shows/873645/events/428577"

ZONE_SELECT = """
<select name="zone">
  <option value="">Select a zone</option>
  <option value="stalls">Stalls</option>
  <option value="circle">Circle</option>
</select>
"""


def seat_map(*states):
    seats = "".join(f'<circle data-seat="S{i}" data-status="{state}"></circle>' for i, state in enumerate(states))
    return f"<main>{ZONE_SELECT}<svg>{seats}</svg></main>"


def seat_payload(*states):
    return json.dumps({"seats": [{"id": i, "status": state} for i, state in enumerate(states)]})


class FakeResponse:
    def __init__(self, url, body):
        self.url = url
        self.headers = {"content-type": "application/json"}
        self.request = SimpleNamespace(resource_type="xhr")
        self._body = body

    async def text(self):
        return self._body


class FakeLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    async def count(self):
        if "select" in self.selector.split(", ") and "<select" in self.page.views[self.page.zone]:
            return 1
        return 0

    async def click(self, timeout=None):
        self.page.clicks.append(self.selector)

    async def scroll_into_view_if_needed(self, timeout=None):
        return None

    async def select_option(self, value, timeout=None):
        self.page.zone = value
        await self.page.fire(value)


class FakeSeatsPage:
    """
    A booking page. ``views`` maps the selected zone (None before any choice)
    to its HTML; ``payloads`` maps "goto" or a zone to the seat JSON the page
    fetches at that moment.
    """

    def __init__(self, views, payloads=None, fail=False):
        self.views = views
        self.payloads = payloads or {}
        self.fail = fail
        self.zone = None
        self.handlers = {}
        self.visited = []
        self.clicks = []
        self.keyboard = SimpleNamespace(press=self._press)

    async def _press(self, key):
        self.clicks.append(key)

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.handlers[event].remove(handler)

    async def fire(self, key):
        body = self.payloads.get(key)
        if body is None:
            return
        for handler in self.handlers.get("response", []):
            await handler(FakeResponse(f"{TICKETS_URL}/seats/{key}", body))

    def locator(self, selector, has_text=None):
        return FakeLocator(self, selector)

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.fail:
            raise PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        await self.fire("goto")

    async def wait_for_load_state(self, state, timeout=None):
        return None

    async def content(self):
        return self.views[self.zone]


class Recorder:
    def __init__(self):
        self.lines = []

    def __call__(self, message, level="INFO"):
        self.lines.append((level, message))


@pytest.fixture(autouse=True)
def no_wait(monkeypatch):
    async def instant(seconds):
        return None

    monkeypatch.setattr("dmh_scraper.ticketsolve.asyncio.sleep", instant)


@pytest.fixture
def zoned_page():
    return FakeSeatsPage({
        None: f"<main>{ZONE_SELECT}</main>",
        "stalls": seat_map("available", "sold", "sold", "sold"),
        "circle": seat_map("sold", "sold"),
    })


def test_page_status_sold_out_banner():
    page = FakeSeatsPage({None: '<main><h1>Comedy Night</h1><div class="availability">Sold out</div></main>'})
    booking = BookingPage(page, TICKETS_URL)

    result = asyncio.run(booking.page_status())

    assert (result.pct, result.source) == (100, "page")
    assert page.visited == [TICKETS_URL + "/seats"]


def test_page_status_keeps_inconclusive_label():
    page = FakeSeatsPage({None: '<main><p class="status">Limited availability</p></main>'})
    booking = BookingPage(page, TICKETS_URL)

    assert asyncio.run(booking.page_status()) is None
    assert booking.status == "Limited availability"


def test_network_reads_payload_fetched_on_load():
    page = FakeSeatsPage({None: "<main><svg></svg></main>"}, {"goto": seat_payload("available", "sold", "sold", "sold")})
    booking = BookingPage(page, TICKETS_URL)

    result = asyncio.run(booking.network())

    assert (result.pct, result.source) == (75, "network")
    assert result.detail == {"capacity": 4, "remaining": 1, "sold": 3, "pct": 75}


def test_dom_sums_seats_over_select_zones(zoned_page):
    booking = BookingPage(zoned_page, TICKETS_URL)

    result = asyncio.run(booking.dom())

    assert (result.pct, result.source) == (83, "dom")
    assert result.detail["capacity"] == 6
    assert result.detail["remaining"] == 1
    assert zoned_page.zone == "circle"


def test_dom_returns_early_on_payload_seen_mid_loop(zoned_page):
    zoned_page.payloads = {"circle": seat_payload("available", "sold", "sold", "sold")}
    booking = BookingPage(zoned_page, TICKETS_URL)

    result = asyncio.run(booking.dom())

    assert (result.pct, result.source) == (75, "network")
    assert result.detail["capacity"] == 4


def test_failed_open_answers_none_everywhere():
    page = FakeSeatsPage({None: ""}, fail=True)
    log = Recorder()
    booking = BookingPage(page, TICKETS_URL, log=log)

    async def run_steps():
        return [await booking.page_status(), await booking.network(), await booking.dom()]

    assert asyncio.run(run_steps()) == [None, None, None]
    assert len(page.visited) == 1
    assert log.lines[0][0] == "WARNING"
    assert "booking page" in log.lines[0][1]


def test_cascade_falls_through_to_seat_map(zoned_page):
    booking = BookingPage(zoned_page, TICKETS_URL)

    result = asyncio.run(resolve_availability("Book Now", booking, log=Recorder()))

    assert (result.pct, result.source) == (83, "dom")
    assert "Escape" in zoned_page.clicks


def test_close_writes_diagnostics(tmp_path):
    page = FakeSeatsPage({None: "<main></main>"}, {"goto": seat_payload("available")})
    booking = BookingPage(page, TICKETS_URL, diag_name="Big_Band-2025")
    asyncio.run(booking.open())

    booking.close(tmp_path)

    saved = json.loads((tmp_path / "Big_Band-2025.json").read_text())
    assert saved["responses"][0]["url"] == TICKETS_URL + "/seats/goto"
    assert page.handlers["response"] == []
