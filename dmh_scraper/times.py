"""
Start-time refinement.

Listing cards often carry only a date. When a start lands on midnight the
booking page (and failing that the venue's event page) is searched for the
clock time of that same day.
"""

import asyncio
import json
import re

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from dmh_scraper.browser import goto, settle
from dmh_scraper.pipeline.runlog import console
from dmh_scraper.seats import SNIFFABLE
from dmh_scraper.ticketsolve import seats_url
from dmh_scraper.utils.dates import (
    TIME_24H,
    at_local_time,
    find_start_in_isoish,
    has_time,
    normalize_start,
    start_from_text,
    ymd,
)
from dmh_scraper.utils.text import clean

DATES_LABEL = re.compile(r"(^|\s)dates?:\s*$", re.IGNORECASE)
MAIN_SCOPE = 'main, header, [role="main"]'
JSONLD_KEYS = ("startDate", "start", "start_time")


def _visible_text(soup):
    body = soup.body or soup
    for tag in body.select("script, style, noscript, template"):
        tag.decompose()
    return clean(body.get_text(" "))


def _dates_label(soup):
    for node in soup.select(".sr-only"):
        if DATES_LABEL.search(node.get_text().strip()):
            return node
    return None


def _span_text(scope):
    return " ".join(clean(n.get_text(" ")) for n in scope.select("span, time"))


def start_from_dates_row(html, y, m, d):
    """
    24-hour time from the row holding the screen-reader "Dates:" label,
    e.g. <div class="sr-only">Dates:</div><span>Tuesday 7 October 2025</span><span>, 19:30</span>.
    Falls back to the first time at the top of the main content.
    """
    soup = BeautifulSoup(html, "html.parser")
    label = _dates_label(soup)
    scopes = []
    if label is not None and label.parent is not None:
        scopes.append(label.parent)
    top = soup.select_one(MAIN_SCOPE)
    if top is not None:
        scopes.append(top)

    for scope in scopes:
        match = TIME_24H.search(clean(scope.get_text(" ")))
        if match:
            return at_local_time(y, m, d, int(match.group(1)), int(match.group(2)))
    return None


def start_from_time_tag(soup):
    tag = soup.select_one("time[datetime]")
    value = (tag.get("datetime") or "") if tag is not None else ""
    if value and re.search(r"\dT\d", value):
        return normalize_start(value)
    return None


def start_from_header(soup, y, m, d):
    """Time near the booking page title: label row, rows after the h1, then the page text."""
    label = _dates_label(soup)
    scope = label.parent if label is not None else None
    if scope is None:
        scope = soup.select_one(MAIN_SCOPE) or soup.body or soup

    buckets = [_span_text(scope)]
    heading = scope.select_one("h1")
    if heading is not None:
        row = heading.parent
        for _ in range(5):
            if row is None:
                break
            buckets.append(_span_text(row))
            row = row.find_next_sibling()
    buckets.append(_visible_text(BeautifulSoup(str(soup), "html.parser")))

    return start_from_text(" • ".join(b for b in buckets if b), y, m, d)


def _jsonld_start(obj):
    if not isinstance(obj, dict):
        return None
    for key in JSONLD_KEYS:
        if obj.get(key):
            return obj[key]
    event = obj.get("event")
    if isinstance(event, dict) and event.get("startDate"):
        return event["startDate"]
    return None


def start_from_jsonld(soup):
    for script in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue
        items = data if isinstance(data, list) else [data]
        if isinstance(data, dict) and isinstance(data.get("@graph"), list):
            items += data["@graph"]
        for item in items:
            value = _jsonld_start(item)
            if value:
                start = normalize_start(str(value))
                if start:
                    return start
    return None


def extract_start_from_html(html, y, m, d):
    """
    Generic start-time extractor for an event or booking page:
    <time datetime>, the booking header, JSON-LD, then any time in the page text.
    """
    soup = BeautifulSoup(html, "html.parser")
    for found in (
        start_from_time_tag(soup),
        start_from_header(soup, y, m, d),
        start_from_jsonld(soup),
    ):
        if found:
            return found
    return start_from_text(_visible_text(soup), y, m, d)


def start_from_payload(text, y, m, d):
    """Start time hidden in a network payload mentioning the given day."""
    found = find_start_in_isoish(text, y, m, d)
    if not found and f"{y:04d}-{m:02d}-{d:02d}" in text:
        found = start_from_text(text, y, m, d)
    return found


async def sniff_start_from_network(page, y, m, d, idle_ms=4000, linger=1.5):
    found = []

    async def on_response(response):
        if found:
            return
        try:
            content_type = (response.headers.get("content-type") or "").lower()
            if not SNIFFABLE.search(content_type):
                return
            text = await response.text()
        except (PlaywrightError, UnicodeDecodeError):
            return
        start = start_from_payload(text or "", y, m, d)
        if start:
            found.append(start)

    page.on("response", on_response)
    try:
        await settle(page, idle_ms)
        await asyncio.sleep(linger)
    finally:
        page.remove_listener("response", on_response)
    return found[0] if found else None


async def _extract_from_page(page, y, m, d):
    try:
        await page.wait_for_selector(MAIN_SCOPE, timeout=6000)
    except PlaywrightError:
        pass
    await asyncio.sleep(1.2)
    return extract_start_from_html(await page.content(), y, m, d)


async def first_found(*coros):
    """Await coroutines concurrently; return the first non-empty result."""
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        for next_done in asyncio.as_completed(tasks):
            try:
                result = await next_done
            except (PlaywrightError, ValueError):
                continue
            if result:
                return result
        return None
    finally:
        for task in tasks:
            task.cancel()


async def discover_start_iso(page, start, event_url=None, tickets_url=None, log=console):
    """Refine a midnight-only start using the booking page, then the event page."""
    if not start:
        return None
    if has_time(start):
        return start

    y, m, d = ymd(start)

    if tickets_url:
        try:
            await goto(page, seats_url(tickets_url), timeout_ms=20000, idle_ms=2500)
            try:
                await page.wait_for_selector(MAIN_SCOPE, timeout=6000)
            except PlaywrightError:
                pass
            await asyncio.sleep(0.8)
            explicit = start_from_dates_row(await page.content(), y, m, d)
            if explicit:
                return explicit

            found = await first_found(
                _extract_from_page(page, y, m, d),
                sniff_start_from_network(page, y, m, d),
            )
            if found:
                return found
        except PlaywrightError as e:
            log(f"  ⚠ booking page time: {e}", "WARNING")

    if event_url:
        try:
            await goto(page, event_url, timeout_ms=20000, idle_ms=2500)
            found = extract_start_from_html(await page.content(), y, m, d)
            if found:
                return found
        except PlaywrightError as e:
            log(f"  ⚠ event page time: {e}", "WARNING")

    return start
