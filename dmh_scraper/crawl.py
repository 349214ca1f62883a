import asyncio

import requests
from playwright.async_api import Error as PlaywrightError

from dmh_scraper import config
from dmh_scraper.browser import render
from dmh_scraper.fetch import fetch_listing_html
from dmh_scraper.listing import collect_pagination_urls, extract_cards
from dmh_scraper.pipeline.runlog import console


async def listing_cards(context, url, log=console):
    """
    Cards on one listing page. Plain HTTP first; when that fails or finds no
    cards (they are lazy-loaded) the page is rendered and scrolled in the browser.
    Returns (html, cards, rendered).
    """
    html = None
    try:
        html = await asyncio.to_thread(fetch_listing_html, url)
    except requests.exceptions.RequestException as e:
        log(f"    {url}: plain fetch failed ({e}), rendering", "WARNING")

    cards = extract_cards(html, url) if html else []
    if cards:
        return html, cards, False

    html = await render(context, url)
    return html, extract_cards(html, url), True


async def discover_cards(context, list_url=config.LIST_URL, log=console, metrics=None):
    """
    Walk every listing page and return (page_urls, raw_cards).
    A broken first page fails the run; later pages are skipped with a warning.
    """
    html, cards, rendered = await listing_cards(context, list_url, log)
    page_urls = collect_pagination_urls(html, list_url)
    if metrics is not None:
        metrics.pages = len(page_urls)
        metrics.rendered_pages += int(rendered)
    log(f"  {list_url}: {len(cards)} cards")

    raw = list(cards)
    for url in page_urls:
        if url == list_url:
            continue
        try:
            _, page_cards, rendered = await listing_cards(context, url, log)
        except PlaywrightError as e:
            log(f"  List page failed {url}: {e}", "WARNING")
            if metrics is not None:
                metrics.pages_failed += 1
                metrics.record_error(f"{url}: {e}")
            continue
        if metrics is not None:
            metrics.rendered_pages += int(rendered)
        log(f"  {url}: {len(page_cards)} cards")
        raw.extend(page_cards)

    return page_urls, raw
