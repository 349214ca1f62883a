import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from dmh_scraper import config
from dmh_scraper.utils.text import absolutize, clean, is_http

CARD_SELECTOR = ".card-event, article, .card"
CARD_TITLE_SELECTOR = "h3 a, h3, .title a, .title, h2 a, h2"
EVENT_LINK_SELECTOR = 'a[href*="/event/"], a[href*="/events/"], a[href*="/event-"]'
PAGE_NUMBER_SELECTOR = "a.page-numbers, nav a"

CTA_CLASS = re.compile(r"\b(btn|button|cta|primary)\b", re.IGNORECASE)
GOOD_STATUS = re.compile(r"sold\s*out|limited|book\s*now", re.IGNORECASE)
MORE_INFO = re.compile(r"more\s*info", re.IGNORECASE)
ANY_STATUS = re.compile(r"book|sold|limited", re.IGNORECASE)
LISTING_PATH = re.compile(r"^/whats-on/")


def is_ticketsolve(url):
    return bool(url) and "ticketsolve" in url.lower()


def is_listing_url(url):
    """True for any page under /whats-on/ on the venue host (index, pager, filtered views)."""
    if not is_http(url):
        return False
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if host != config.VENUE_HOST and not host.endswith("." + config.VENUE_HOST):
        return False
    return bool(LISTING_PATH.match(parsed.path or "/"))


def collect_pagination_urls(html, list_url=config.LIST_URL):
    """
    Discover every listing page reachable from the first one.

    Numbered pager links give the highest page number, from which
    /whats-on/page/N/ URLs are generated; any other listing links on the page
    are added as found. The start URL always comes first.
    """
    soup = BeautifulSoup(html, "html.parser")
    urls = {list_url: None}

    numbers = []
    for link in soup.select(PAGE_NUMBER_SELECTOR):
        match = re.match(r"^\d+", link.get_text(strip=True))
        if match:
            numbers.append(int(match.group()))
    max_page = max(numbers) if numbers else 1
    for n in range(2, max_page + 1):
        urls[urljoin(list_url, f"/whats-on/page/{n}/")] = None

    for link in soup.select("a[href]"):
        url = absolutize(link.get("href"), list_url)
        if is_listing_url(url):
            urls[url] = None

    return list(urls)


def _text(el):
    return clean(el.get_text(" ")) if el is not None else ""


def _is_cta(el):
    return bool(CTA_CLASS.search(" ".join(el.get("class") or [])))


def _pick_status_element(card):
    ctas = [el for el in card.select("a, button, span") if _is_cta(el)]
    for el in ctas:
        text = _text(el)
        if GOOD_STATUS.search(text) and not MORE_INFO.search(text):
            return el
    for el in ctas:
        if ANY_STATUS.search(_text(el)):
            return el
    return None


def parse_card(card, page_url):
    """Pull one raw card record out of a listing card node, or None without a title."""
    title = _text(card.select_one(CARD_TITLE_SELECTOR))
    if not title:
        return None

    time_el = card.select_one("time[datetime]") or card.select_one("time") or card.select_one(".date")
    datetime_attr = (time_el.get("datetime") or "").strip() if time_el is not None else ""
    date_text = datetime_attr or _text(time_el)

    status = ""
    tickets_href = ""
    pref = _pick_status_element(card)
    if pref is not None:
        status = _text(pref)
        if pref.name == "a" and pref.get("href"):
            tickets_href = pref.get("href")

    if not is_ticketsolve(tickets_href):
        ts_link = card.select_one('a[href*="ticketsolve"]')
        if ts_link is not None:
            tickets_href = ts_link.get("href") or ""

    event_link = card.select_one(EVENT_LINK_SELECTOR)
    event_href = (event_link.get("href") or "") if event_link is not None else ""

    return {
        "title": title,
        "datetime": datetime_attr,
        "date_text": date_text,
        "status": status,
        "tickets_href": absolutize(tickets_href, page_url),
        "event_href": absolutize(event_href, page_url),
    }


def extract_cards(html, page_url):
    """Every event card on a rendered listing page, in document order."""
    soup = BeautifulSoup(html, "html.parser")
    cards = []
    for node in soup.select(CARD_SELECTOR):
        if node.select_one("h2, h3, .title") is None:
            continue
        card = parse_card(node, page_url)
        if card:
            cards.append(card)
    return cards


def find_ticketsolve_link(html, base_url):
    """Ticketsolve booking link on a venue event page ("" when absent)."""
    soup = BeautifulSoup(html, "html.parser")
    link = soup.select_one('a[href*="ticketsolve"]')
    if link is not None and link.get("href"):
        return absolutize(link.get("href"), base_url)
    button = soup.select_one('[data-href*="ticketsolve"]')
    if button is not None and button.get("data-href"):
        return absolutize(button.get("data-href"), base_url)
    return ""
