import asyncio
import re

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from dmh_scraper import config
from dmh_scraper.availability import Resolution, SOLD_OUT_PCT, find_status_text, is_conclusive
from dmh_scraper.browser import goto, settle
from dmh_scraper.listing import find_ticketsolve_link
from dmh_scraper.pipeline.runlog import console
from dmh_scraper.seats import SeatCount, SeatTap, count_seats_in_html
from dmh_scraper.utils.text import clean

CONSENT = 'button:has-text("Accept"), button:has-text("I Agree"), button[aria-label*="accept" i]'
SEAT_CANVAS = 'canvas, [id*="seat"], [class*="seatmap"], svg'
FULL_PRICE = 'label:has-text("Full"), [for*="Full"], [role="radio"]:has-text("Full")'
ZONE_PICKER = '[role="listbox"], select'


def seats_url(url):
    """Booking URL of the seat-selection view: append /seats unless it is already there."""
    if re.search(r"/seats\b", url):
        return url
    return url.rstrip("/") + "/seats"


def read_select_zones(html):
    """Price zones offered by the first <select>, minus "Select ..." placeholders."""
    soup = BeautifulSoup(html, "html.parser")
    select = soup.select_one("select")
    if select is None:
        return []
    zones = []
    for option in select.select("option"):
        text = clean(option.get_text(" "))
        value = option.get("value")
        if value and not re.search(r"select", text, re.IGNORECASE):
            zones.append({"value": value, "text": text})
    return zones


def read_listbox_zones(html):
    soup = BeautifulSoup(html, "html.parser")
    zones = []
    for option in soup.select('[role="option"]'):
        text = clean(option.get_text(" "))
        value = option.get("data-value") or text
        if value:
            zones.append({"value": value, "text": text})
    return zones


def zone_value_for_text(html, text):
    """Value of the first <select> option whose label contains text."""
    needle = (text or "").lower()
    for zone in read_select_zones(html):
        if needle in zone["text"].lower():
            return zone["value"]
    return None


async def _click_first(locator):
    if await locator.count():
        try:
            await locator.first.click(timeout=3000)
            return True
        except PlaywrightError:
            return False
    return False


async def find_ticketsolve_on_event_page(page, event_url):
    """Open the venue event page and return its Ticketsolve link, or ""."""
    await goto(page, event_url, idle_ms=3000)
    return find_ticketsolve_link(await page.content(), event_url)


async def activate_seat_map(page):
    """Consent, reveal the seat map and poke the price controls so seat data loads."""
    await _click_first(page.locator(CONSENT))

    canvas = page.locator(SEAT_CANVAS)
    if await canvas.count():
        try:
            await canvas.first.scroll_into_view_if_needed(timeout=3000)
        except PlaywrightError:
            pass

    await _click_first(page.locator(FULL_PRICE))

    listbox = page.locator(ZONE_PICKER)
    if await _click_first(listbox):
        try:
            await page.keyboard.press("Escape")
        except PlaywrightError:
            pass

    await settle(page, config.NET_IDLE_MS)
    await asyncio.sleep(0.6)


async def read_zones(page):
    if await page.locator("select").count():
        return read_select_zones(await page.content())

    listbox = page.locator('[role="listbox"]')
    if await listbox.count():
        await _click_first(listbox)
        zones = read_listbox_zones(await page.content())
        try:
            await page.keyboard.press("Escape")
        except PlaywrightError:
            pass
        return zones

    return []


async def select_zone(page, zone):
    select = page.locator("select")
    if await select.count():
        value = zone.get("value") or zone_value_for_text(await page.content(), zone.get("text"))
        if value:
            try:
                await select.first.select_option(value, timeout=3000)
                return True
            except PlaywrightError:
                pass

    listbox = page.locator('[role="listbox"]')
    if await listbox.count() and zone.get("text"):
        if await _click_first(listbox):
            option = page.locator('[role="option"]', has_text=zone["text"])
            if await _click_first(option):
                return True

    return False


class BookingPage:
    """
    The booking-site steps of the availability cascade, sharing one visit to
    the seat-selection page. The page is opened on first use; if that fails
    every step answers None.
    """

    def __init__(self, page, tickets_url, diag_name=None, log=console):
        self.page = page
        self.url = seats_url(tickets_url)
        self.diag_name = diag_name
        self.log = log
        self.tap = SeatTap(page)
        self.status = ""
        self._opened = None
        self._activated = False

    async def open(self):
        if self._opened is None:
            self.tap.attach()
            try:
                await goto(self.page, self.url, idle_ms=5000)
                self._opened = True
            except PlaywrightError as e:
                self.log(f"  ⚠ booking page: {e}", "WARNING")
                self._opened = False
        return self._opened

    async def page_status(self):
        if not await self.open():
            return None
        self.status = find_status_text(await self.page.content())
        if is_conclusive(self.status):
            return Resolution(SOLD_OUT_PCT, "page", {"status": self.status})
        return None

    def from_tap(self):
        best = self.tap.best()
        if best and best.capacity > 0:
            return Resolution(best.pct, "network", best.as_dict())
        return None

    async def network(self):
        if not await self.open():
            return None
        if not self._activated:
            self._activated = True
            await activate_seat_map(self.page)
        return self.from_tap()

    async def dom(self):
        if not await self.open():
            return None

        zones = await read_zones(self.page) or [{"text": "All", "value": None}]
        total = SeatCount()
        for zone in zones:
            await select_zone(self.page, zone)
            await settle(self.page, config.NET_IDLE_MS)
            await asyncio.sleep(0.6)

            hit = self.from_tap()
            if hit:
                return hit

            count = count_seats_in_html(await self.page.content())
            if count.capacity > 0:
                total = total + count

        if total.capacity > 0:
            return Resolution(total.pct, "dom", total.as_dict())
        return None

    def close(self, diag_dir=None):
        self.tap.detach()
        if diag_dir is not None and self.diag_name:
            try:
                self.tap.flush(diag_dir, self.diag_name)
            except OSError as e:
                self.log(f"  ⚠ diagnostics: {e}", "WARNING")
