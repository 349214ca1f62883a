#!/usr/bin/env python3
"""
Scrape De Montfort Hall's what's-on listing and save events to JSON.

For each event the front-end gets a title, a UTC start (plus London
wall-clock), the card's status label and override_pct, an estimate of the
percentage of tickets sold. See dmh_scraper.availability for how that
estimate is settled.

Environment (see dmh_scraper/config.py): HEADLESS, DMH_LIMIT, DMH_FROM,
DMH_TO, DMH_PER_EVENT_MS, DMH_CONCURRENCY, DMH_DIAGNOSTICS, DMH_OUTPUT.
"""

import asyncio
import sys
import time
import traceback
from datetime import datetime

from playwright.async_api import Error as PlaywrightError

from dmh_scraper import config
from dmh_scraper.browser import browser_context, run_pool
from dmh_scraper.crawl import discover_cards
from dmh_scraper.pipeline.dedupe import apply_limit, dedupe_cards, dedupe_events, filter_window
from dmh_scraper.pipeline.io import write_events, write_status
from dmh_scraper.pipeline.metrics import RunMetrics
from dmh_scraper.pipeline.runlog import RunLog
from dmh_scraper.pipeline.validate import validate_event
from dmh_scraper.resolve import resolve_event
from dmh_scraper.utils.dates import parse_window_date


def select_cards(raw_cards, log):
    cards = dedupe_cards(raw_cards)
    from_date = parse_window_date(config.FROM_DATE)
    to_date = parse_window_date(config.TO_DATE)
    if from_date or to_date:
        before = len(cards)
        cards = filter_window(cards, from_date, to_date)
        log(f"  Date window kept {len(cards)} of {before} cards")
    if config.LIMIT is not None:
        cards = apply_limit(cards, config.LIMIT)
    return cards


async def scrape(log, metrics):
    diag_dir = config.DIAG_DIR if config.DIAGNOSTICS else None

    async with browser_context() as context:
        log("Discovering listing pages...")
        page_urls, raw_cards = await discover_cards(context, config.LIST_URL, log, metrics)
        cards = select_cards(raw_cards, log)
        metrics.cards = len(cards)
        log(f"Discovered {len(cards)} events across {len(page_urls)} pages")

        pages = [await context.new_page() for _ in range(config.CONCURRENCY)]

        async def worker(page, index, card):
            try:
                return await resolve_event(
                    page, card, index, len(cards), log,
                    per_event_ms=config.PER_EVENT_MS,
                    diag_dir=diag_dir,
                )
            except Exception as e:
                metrics.record_error(f"{card['title']}: {e}")
                log(f"  ERROR: Failed to resolve {card['title']}: {e}", "ERROR")
                log(f"  Traceback:\n{traceback.format_exc()}", "ERROR")
                return None

        resolved = [r for r in await run_pool(cards, pages, worker) if r is not None]

    for r in resolved:
        metrics.sources[r.resolution.source] += 1
        metrics.refined_starts += int(r.refined)

    events = dedupe_events([r.event for r in resolved])
    valid_events = [e for e in events if validate_event(e)]
    metrics.invalid = len(events) - len(valid_events)
    metrics.events = len(valid_events)
    return valid_events


def log_summary(log, metrics):
    log("")
    log("=" * 60)
    log("RUN SUMMARY")
    log("=" * 60)
    log(f"{'Listing pages':<24} {metrics.pages:>7} ({metrics.pages_failed} failed, {metrics.rendered_pages} rendered)")
    log(f"{'Cards':<24} {metrics.cards:>7}")
    log(f"{'Events written':<24} {metrics.events:>7}")
    log(f"{'Starts refined':<24} {metrics.refined_starts:>7}")
    log("-" * 60)
    for source in ("status", "page", "network", "dom", "fallback"):
        log(f"{'  via ' + source:<24} {metrics.sources.get(source, 0):>7}")
    log("-" * 60)
    log(f"{'Errors':<24} {metrics.errors:>7}")
    log(f"{'Time':<24} {metrics.duration_ms:>6.0f}ms")
    log("=" * 60)


def main():
    log = RunLog()
    metrics = RunMetrics()
    run_timestamp = datetime.utcnow().isoformat() + "Z"
    start_time = time.time()

    log(f"Starting scrape run at {run_timestamp}")

    success = True
    try:
        events = asyncio.run(scrape(log, metrics))
        write_events(events, config.OUTPUT_PATH)
        log(f"Wrote {len(events)} events → {config.OUTPUT_PATH}")
        if config.DIAGNOSTICS:
            log(f"Diagnostics saved in: {config.DIAG_DIR}/ (one JSON per event)")
    except (PlaywrightError, OSError) as e:
        success = False
        metrics.record_error(str(e))
        log(f"ERROR: Scrape failed: {e}", "ERROR")
        log(f"  Traceback:\n{traceback.format_exc()}", "ERROR")

    metrics.duration_ms = (time.time() - start_time) * 1000
    log_summary(log, metrics)

    write_status({
        "last_run": run_timestamp,
        "success": success,
        "output": str(config.OUTPUT_PATH),
        **metrics.as_dict(),
    }, config.STATUS_PATH)
    log(f"Status saved to {config.STATUS_PATH}")

    log.save(config.LOG_PATH, retention_days=config.LOG_RETENTION_DAYS)
    print(f"Log saved to {config.LOG_PATH}")

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
