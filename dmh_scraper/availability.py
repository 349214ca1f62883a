"""
Availability resolution.

Every event ends up with one ``override_pct`` (0-100, percent sold). The
signals are tried cheapest first: the listing card's own status text, the
booking page's status text, seat-map payloads sniffed off the network, and
finally seats counted in the rendered seat map. Whichever answers first wins;
when none does, the card status is mapped through ``STATUS_TABLE``.
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from dmh_scraper.pipeline.runlog import console
from dmh_scraper.utils.text import clean

UNKNOWN_PCT = 30
SOLD_OUT_PCT = 100

# First match wins, so "almost sold out" must come before "sold out".
STATUS_TABLE = [
    (re.compile(r"almost\s*sold"), 85),
    (re.compile(r"sold\s*out|\bsold\b"), SOLD_OUT_PCT),
    (re.compile(r"very\s*limited|limited"), 85),
    (re.compile(r"last\s*(few|remaining)|few\s*(left|tickets|remaining)|low\s*availability"), 75),
    (re.compile(r"selling\s*fast"), 70),
    (re.compile(r"book\s*now|\bbook|on\s*sale|(?<!not )\bavailable\b"), 48),
]

STATUS_SPOTS = '[class*="availability"], [class*="status"], [role="alert"], .alert'


def status_to_pct(status):
    """Map a status label ("SOLD OUT", "Limited availability", ...) to percent sold."""
    text = (status or "").lower()
    for pattern, pct in STATUS_TABLE:
        if pattern.search(text):
            return pct
    return UNKNOWN_PCT


def is_known_status(status):
    text = (status or "").lower()
    return any(pattern.search(text) for pattern, _ in STATUS_TABLE)


def is_conclusive(status):
    """Status text that settles availability on its own: the event is sold out."""
    return status_to_pct(status) == SOLD_OUT_PCT


def find_status_text(html):
    """The first recognisable availability label on a booking page ("" if none)."""
    soup = BeautifulSoup(html, "html.parser")
    for el in soup.select(STATUS_SPOTS):
        text = clean(el.get_text(" "))
        if text and len(text) <= 120 and is_known_status(text):
            return text
    heading = soup.select_one("h1")
    if heading is not None:
        sibling = heading.find_next_sibling()
        for _ in range(3):
            if sibling is None:
                break
            text = clean(sibling.get_text(" "))
            if text and len(text) <= 120 and is_conclusive(text):
                return text
            sibling = sibling.find_next_sibling()
    return ""


@dataclass
class Resolution:
    pct: int
    source: str
    detail: dict = field(default_factory=dict)


def fallback_resolution(card_status, page_status=""):
    """Last resort: map the card status (or the booking page's, when the card has none)."""
    status = card_status
    if not is_known_status(status) and page_status:
        status = page_status
    return Resolution(status_to_pct(status), "fallback", {"status": status})


async def from_card_status(status):
    if is_conclusive(status):
        return Resolution(SOLD_OUT_PCT, "status", {"status": status})
    return None


async def run_cascade(strategies, fallback, log=console):
    """
    Run (name, async callable) strategies in order and return the first
    Resolution any of them produces. A strategy that raises is logged and
    skipped; ``fallback`` is returned when nothing answers.
    """
    for name, strategy in strategies:
        try:
            result = await strategy()
        except Exception as e:
            log(f"  ⚠ {name}: {type(e).__name__}: {e}", "WARNING")
            continue
        if result is not None:
            return result
    return fallback


async def resolve_availability(card_status, booking=None, log=console):
    """
    Percent sold for one event.

    ``booking`` is an opened-on-demand booking page (see
    ``dmh_scraper.ticketsolve.BookingPage``); without one only the card
    status is available.
    """
    strategies = [("card status", lambda: from_card_status(card_status))]
    if booking is not None:
        strategies += [
            ("booking page status", booking.page_status),
            ("network seats", booking.network),
            ("seat map", booking.dom),
        ]

    result = await run_cascade(strategies, None, log)
    if result is not None:
        return result
    return fallback_resolution(card_status, booking.status if booking is not None else "")
