from dmh_scraper.utils.dates import parse_iso

REQUIRED_FIELDS = ["title", "status", "override_pct"]


def validate_event(event):
    """Check that event has all required fields with valid data."""
    for field in REQUIRED_FIELDS:
        if field not in event:
            return False
    if not event.get("title"):
        return False
    pct = event["override_pct"]
    if isinstance(pct, bool) or not isinstance(pct, int) or not 0 <= pct <= 100:
        return False
    start = event.get("start")
    if start is not None and parse_iso(start) is None:
        return False
    return True
