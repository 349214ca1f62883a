import asyncio
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError

from dmh_scraper import config
from dmh_scraper.availability import Resolution, fallback_resolution, resolve_availability
from dmh_scraper.browser import with_deadline
from dmh_scraper.listing import is_ticketsolve
from dmh_scraper.pipeline.dedupe import card_start
from dmh_scraper.pipeline.runlog import console
from dmh_scraper.ticketsolve import BookingPage, find_ticketsolve_on_event_page
from dmh_scraper.times import discover_start_iso
from dmh_scraper.utils.dates import local_wallclock
from dmh_scraper.utils.text import diag_name


@dataclass
class ResolvedEvent:
    event: dict
    resolution: Resolution
    refined: bool = False


def build_event(card, start, pct):
    start_local, tz = local_wallclock(start)
    return {
        "title": card["title"],
        "start": start,
        "start_local": start_local,
        "tz": tz,
        "status": (card.get("status") or "").upper(),
        "override_pct": pct,
    }


async def find_tickets_url(page, card, per_event_ms=config.PER_EVENT_MS, log=console):
    """The card's Ticketsolve link, or the one on its venue event page ("" if neither)."""
    tickets = card.get("tickets_href") or ""
    if is_ticketsolve(tickets):
        return tickets
    if card.get("event_href"):
        try:
            found = await with_deadline(
                find_ticketsolve_on_event_page(page, card["event_href"]),
                per_event_ms,
                "find_ticketsolve_on_event_page",
            )
            if found:
                return found
        except (asyncio.TimeoutError, PlaywrightError) as e:
            log(f"  ⚠ ticketsolve discovery: {e}", "WARNING")
    return ""


async def resolve_event(page, card, index=0, total=1, log=console,
                        per_event_ms=config.PER_EVENT_MS, diag_dir=None):
    """
    Turn one listing card into an output event: find its booking page, refine
    a date-only start to a clock time, and settle override_pct through the
    availability cascade. Every browser step runs under its own per-event
    deadline; a step that times out falls through to the next one.
    """
    log(f"[{index + 1}/{total}] {card['title']}")

    tickets = await find_tickets_url(page, card, per_event_ms, log)

    start = card_start(card)
    refined = False
    if start:
        try:
            better = await with_deadline(
                discover_start_iso(page, start, card.get("event_href"), tickets, log),
                per_event_ms,
                "discover_start_iso",
            )
            if better:
                refined = better != start
                start = better
        except asyncio.TimeoutError as e:
            log(f"  ⚠ time refine: {e}", "WARNING")

    status = card.get("status") or ""
    booking = BookingPage(page, tickets, diag_name(card["title"], start), log) if tickets else None
    try:
        resolution = await with_deadline(
            resolve_availability(status, booking, log),
            per_event_ms,
            "resolve_availability",
        )
    except asyncio.TimeoutError as e:
        log(f"  ⚠ seat count: {e}", "WARNING")
        resolution = (booking.from_tap() if booking else None) or fallback_resolution(
            status, booking.status if booking else ""
        )
    finally:
        if booking is not None:
            booking.close(diag_dir)

    log(f"  ↳ {resolution.pct}% sold ({resolution.source}){' • ' + start if start else ''}")
    return ResolvedEvent(build_event(card, start, resolution.pct), resolution, refined)
