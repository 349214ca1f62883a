from dmh_scraper.utils.dates import normalize_start, parse_iso


def uniq_by(items, key):
    """Keep the first item for each key, preserving order."""
    seen = set()
    out = []
    for item in items:
        k = key(item)
        if k not in seen:
            seen.add(k)
            out.append(item)
    return out


def dedupe_cards(cards):
    """The same card often shows on several listing pages (and in nested wrappers)."""
    return uniq_by(cards, lambda c: f"{c['title']}|{c.get('datetime') or c.get('date_text')}")


def dedupe_events(events):
    return uniq_by(events, lambda e: f"{e['title']}|{e.get('start')}|{e.get('override_pct')}")


def card_start(card):
    """Start of a card from its datetime attribute, else its date text."""
    return normalize_start(card.get("datetime")) or normalize_start(card.get("date_text"))


def filter_window(cards, from_date=None, to_date=None):
    """
    Drop cards outside [from_date, to_date] (aware datetimes, either optional).
    Cards whose date cannot be read are kept.
    """
    if not from_date and not to_date:
        return cards

    kept = []
    for card in cards:
        start = parse_iso(card_start(card))
        if start is not None:
            if from_date and start < from_date:
                continue
            if to_date and start > to_date:
                continue
        kept.append(card)
    return kept


def apply_limit(cards, limit=None):
    if limit is None or limit < 0:
        return cards
    return cards[:limit]
