import re
from urllib.parse import urljoin, urldefrag


def clean(text):
    """Collapse whitespace runs and strip."""
    return re.sub(r"\s+", " ", text or "").strip()


def diag_name(title, start):
    """File-safe name for an event's diagnostics dump."""
    base = re.sub(r"[^\w\-]+", "_", (title or "event")[:60])
    stamp = re.sub(r"[^\w\-]+", "_", start or "no-date")
    return f"{base}-{stamp}"


def is_http(url):
    return bool(re.match(r"^https?://", url or "", re.IGNORECASE))


def absolutize(href, base):
    """Resolve href against base and drop any fragment; "" when there is nothing to resolve."""
    if not href:
        return ""
    try:
        return urldefrag(urljoin(base, href.strip()))[0]
    except ValueError:
        return href
