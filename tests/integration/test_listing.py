from pathlib import Path

from dmh_scraper.config import LIST_URL
from dmh_scraper.listing import (
    collect_pagination_urls,
    extract_cards,
    find_ticketsolve_link,
    is_listing_url,
)
from dmh_scraper.pipeline.dedupe import card_start, dedupe_cards


def test_extract_cards_from_listing_fixture():
    html = Path("tests/fixtures/dmh_listing.html").read_text()

    cards = extract_cards(html, LIST_URL)

    assert [c["title"] for c in cards] == [
        "The Big Band Show",
        "Comedy Night",
        "Orchestra Gala",
        "The Big Band Show",
    ]

    band, comedy, gala, _ = cards
    assert band["datetime"] == "2025-10-07"
    assert band["status"] == "Book Now"
    assert band["tickets_href"] == "https://demontforthall.ticketsolve.com/ticketbooth/shows/873645/events/428577"
    assert band["event_href"] == "https://demontforthall.co.uk/event/the-big-band-show/"

    assert comedy["datetime"] == ""
    assert comedy["date_text"] == "Saturday 11 October 2025"
    assert comedy["status"] == "Sold Out"
    assert comedy["tickets_href"] == ""
    assert comedy["event_href"] == "https://demontforthall.co.uk/events/comedy-night/"

    assert gala["status"] == "Limited Availability"
    assert gala["tickets_href"] == "https://demontforthall.ticketsolve.com/ticketbooth/shows/900001"
    assert gala["event_href"] == "https://demontforthall.co.uk/event-orchestra-gala/"


def test_duplicate_cards_are_dropped():
    html = Path("tests/fixtures/dmh_listing.html").read_text()
    cards = dedupe_cards(extract_cards(html, LIST_URL))
    assert len(cards) == 3
    assert cards[0]["status"] == "Book Now"


def test_card_starts():
    html = Path("tests/fixtures/dmh_listing.html").read_text()
    starts = [card_start(c) for c in extract_cards(html, LIST_URL)[:3]]
    assert starts == [
        "2025-10-07T00:00:00.000Z",
        "2025-10-11T00:00:00.000Z",
        "2025-11-02T19:30:00.000Z",
    ]


def test_status_falls_back_to_any_status_button():
    html = Path("tests/fixtures/dmh_listing_page2.html").read_text()
    cards = extract_cards(html, "https://demontforthall.co.uk/whats-on/page/2/")
    panto = cards[0]
    assert panto["title"] == "Panto: Cinderella"
    assert panto["status"] == "Selling fast - Book"
    assert panto["tickets_href"] == ""
    assert card_start(panto) == "2025-12-12T14:00:00.000Z"


def test_lazy_listing_has_no_cards():
    html = Path("tests/fixtures/dmh_listing_lazy.html").read_text()
    assert extract_cards(html, LIST_URL) == []
    assert collect_pagination_urls(html, LIST_URL) == [LIST_URL]


def test_collect_pagination_urls():
    html = Path("tests/fixtures/dmh_listing.html").read_text()
    assert collect_pagination_urls(html, LIST_URL) == [
        LIST_URL,
        "https://demontforthall.co.uk/whats-on/page/2/",
        "https://demontforthall.co.uk/whats-on/page/3/",
        "https://demontforthall.co.uk/whats-on/page/4/",
    ]


def test_is_listing_url():
    assert is_listing_url("https://demontforthall.co.uk/whats-on/")
    assert is_listing_url("https://www.demontforthall.co.uk/whats-on/page/7/")
    assert is_listing_url("https://demontforthall.co.uk/whats-on/comedy/")
    assert not is_listing_url("https://demontforthall.co.uk/event/the-big-band-show/")
    assert not is_listing_url("https://example.com/whats-on/")
    assert not is_listing_url("mailto:box.office@example.com")


def test_find_ticketsolve_link_on_event_page():
    html = Path("tests/fixtures/dmh_event_page.html").read_text()
    url = "https://demontforthall.co.uk/events/comedy-night/"
    assert find_ticketsolve_link(html, url) == "https://demontforthall.ticketsolve.com/ticketbooth/shows/873700"
    assert find_ticketsolve_link("<a href='/visit/'>Visit</a>", url) == ""
