import requests

from dmh_scraper import config


def fetch_listing_html(url):
    """Plain HTTP fetch of a listing page (no JavaScript)."""
    resp = requests.get(url, headers=config.LISTING_HEADERS, timeout=config.REQUEST_TIMEOUT)
    resp.raise_for_status()
    return resp.text
