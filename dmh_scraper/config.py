import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

REPO_ROOT = Path(__file__).resolve().parents[1]
PUBLIC_DIR = REPO_ROOT / "public"
OUTPUT_PATH = Path(os.environ.get("DMH_OUTPUT", PUBLIC_DIR / "dmh-events.json"))
STATUS_PATH = PUBLIC_DIR / "dmh-scrape-status.json"
LOG_PATH = PUBLIC_DIR / "dmh-scrape-log.txt"
DIAG_DIR = REPO_ROOT / "diagnostics"
LOG_RETENTION_DAYS = 14

LIST_URL = "https://demontforthall.co.uk/whats-on/"
VENUE_HOST = "demontforthall.co.uk"
TZ = "Europe/London"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
)
LISTING_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-GB,en;q=0.9",
}
REQUEST_TIMEOUT = 30


def _env_int(name, default=None):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


HEADLESS = os.environ.get("HEADLESS", "true").lower() != "false"
LIMIT = _env_int("DMH_LIMIT")
FROM_DATE = os.environ.get("DMH_FROM") or None
TO_DATE = os.environ.get("DMH_TO") or None
PER_EVENT_MS = _env_int("DMH_PER_EVENT_MS", 45000)
CONCURRENCY = max(1, _env_int("DMH_CONCURRENCY", 3))
DIAGNOSTICS = os.environ.get("DMH_DIAGNOSTICS", "true").lower() == "true"

NAV_TIMEOUT_MS = 60000
NET_IDLE_MS = 4500
EXPAND_PASSES = 8
