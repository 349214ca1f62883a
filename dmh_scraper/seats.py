import json
import math
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

SEAT_KEYS = ("seat", "seatId", "id", "x", "row")
STATE_KEYS = ("available", "isAvailable", "status", "state")

SEAT_SELECTOR = (
    'svg [data-seat], svg [data-status], '
    '[role="button"][aria-label*="seat" i], [class*="seat"]'
)

FREE = re.compile(r"\b(available|free|open)\b")
TAKEN = re.compile(r"unavailable|not\s+available|sold|taken|reserved|occupied|held|blocked")
TAKEN_CLASS = re.compile(r"\b(unavailable|sold|taken|reserved|blocked|held)\b")
FREE_CLASS = re.compile(r"\b(available|free)\b")
SNIFFABLE = re.compile(r"json|javascript|text")
STATE_ATTRS = ("data-seat", "data-status")


def pct_sold(capacity, available):
    """Percentage of capacity sold, rounded half-up and clamped to 0..100."""
    if not capacity or capacity <= 0:
        return None
    sold = capacity - available
    pct = math.floor(sold / capacity * 100 + 0.5)
    return max(0, min(100, pct))


@dataclass
class SeatCount:
    capacity: int = 0
    available: int = 0

    @property
    def sold(self):
        return self.capacity - self.available

    @property
    def pct(self):
        return pct_sold(self.capacity, self.available)

    def __add__(self, other):
        return SeatCount(self.capacity + other.capacity, self.available + other.available)

    def as_dict(self):
        return {
            "capacity": self.capacity,
            "remaining": self.available,
            "sold": self.sold,
            "pct": self.pct,
        }


def _looks_like_seat(node):
    return any(k in node for k in SEAT_KEYS) and any(k in node for k in STATE_KEYS)


def _seat_is_free(node):
    flag = node.get("available", node.get("isAvailable"))
    if flag is True:
        return True
    state = node.get("status")
    if state is None:
        state = node.get("state")
    state = str(state if state is not None else "").lower()
    return bool(FREE.search(state)) and not TAKEN.search(state)


def summarise_seat_payload(data):
    """
    Count seat-like records anywhere in a decoded JSON payload.

    A dict counts as a seat when it carries an identity key (seat, seatId,
    id, x, row) and a state key (available, isAvailable, status, state).
    """
    count = SeatCount()
    stack = [data]
    while stack:
        node = stack.pop()
        if isinstance(node, list):
            stack.extend(reversed(node))
            continue
        if not isinstance(node, dict):
            continue
        if _looks_like_seat(node):
            count.capacity += 1
            if _seat_is_free(node):
                count.available += 1
        stack.extend(node.values())
    return count


def parse_json_loose(text):
    """Decode JSON, falling back to the outermost {...} or [...] span (e.g. JSONP)."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        pass
    match = re.search(r"\{.*\}|\[.*\]", text, re.DOTALL)
    if not match:
        return None
    try:
        return json.loads(match.group())
    except ValueError:
        return None


def _style(el):
    rules = {}
    for part in (el.get("style") or "").split(";"):
        if ":" in part:
            key, value = part.split(":", 1)
            rules[key.strip().lower()] = value.strip().lower()
    return rules


def _dom_seat_is_free(el):
    label = (el.get("aria-label") or "").lower()
    data_status = (el.get("data-status") or "").lower()
    classes = el.get("class") or []
    cls = (" ".join(classes) if isinstance(classes, list) else classes).lower()

    if TAKEN.search(label):
        return False
    if FREE.search(label):
        return True
    if TAKEN.search(data_status):
        return False
    if FREE.search(data_status):
        return True
    if TAKEN_CLASS.search(cls):
        return False
    if FREE_CLASS.search(cls):
        return True

    style = _style(el)
    if style.get("pointer-events") == "none":
        return False
    try:
        if float(style.get("opacity", "1")) <= 0.2:
            return False
    except ValueError:
        pass
    return el.get("tabindex") != "-1"


def _carries_state(el):
    if el.get("role") == "button" and el.has_attr("aria-label"):
        return True
    return any(el.has_attr(attr) for attr in STATE_ATTRS)


def _pick_seats(matches):
    """
    One element per seat. Elements carrying seat data win, innermost first,
    so <g class="seat" data-status="sold"><circle class="seat-shape"/></g> is
    one sold seat and a wrapping <svg class="seatmap"> is not a seat.
    Without any such element, plain class matches count when they are leaves.
    """
    marked = [el for el in matches if _carries_state(el)]
    if marked:
        return [el for el in marked if not any(_carries_state(d) for d in el.select(SEAT_SELECTOR))]
    return [el for el in matches if el.select_one(SEAT_SELECTOR) is None]


def count_seats_in_html(html):
    """Seat capacity and availability as drawn in a rendered seat map."""
    soup = BeautifulSoup(html, "html.parser")
    seats = _pick_seats(soup.select(SEAT_SELECTOR))
    if not seats:
        return SeatCount()
    return SeatCount(len(seats), sum(1 for el in seats if _dom_seat_is_free(el)))


class SeatTap:
    """
    Listen to a page's network traffic and keep every payload that looks
    like a seat map. Also records what went past, for the diagnostics dump.
    """

    def __init__(self, page):
        self.page = page
        self.hits = []
        self.diag = {"responses": [], "ws": []}

    def attach(self):
        self.page.on("response", self._on_response)
        self.page.on("websocket", self._on_websocket)
        return self

    def detach(self):
        for event, handler in (("response", self._on_response), ("websocket", self._on_websocket)):
            try:
                self.page.remove_listener(event, handler)
            except (KeyError, ValueError):
                pass

    def feed(self, text):
        data = parse_json_loose(text)
        if data is None:
            return None
        count = summarise_seat_payload(data)
        if count.capacity > 0:
            self.hits.append(count)
        return count

    def best(self):
        if not self.hits:
            return None
        return max(self.hits, key=lambda hit: hit.capacity)

    async def _on_response(self, response):
        try:
            content_type = (response.headers.get("content-type") or "").lower()
            resource_type = response.request.resource_type
            if not SNIFFABLE.search(content_type) and resource_type not in ("xhr", "fetch"):
                return
            text = await response.text()
        except (PlaywrightError, UnicodeDecodeError):
            return
        if not text:
            return
        self.diag["responses"].append({
            "url": response.url,
            "ct": content_type,
            "type": resource_type,
            "size": len(text),
        })
        self.feed(text)

    def _on_websocket(self, ws):
        record = {"url": ws.url, "frames": []}
        self.diag["ws"].append(record)

        def received(payload):
            record["frames"].append({"in": True, "size": len(payload or "")})
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8", "replace")
            self.feed(payload)

        def sent(payload):
            record["frames"].append({"out": True, "size": len(payload or "")})

        ws.on("framereceived", received)
        ws.on("framesent", sent)

    def flush(self, diag_dir, name):
        diag_dir.mkdir(parents=True, exist_ok=True)
        with open(diag_dir / f"{name}.json", "w") as f:
            json.dump(self.diag, f, indent=2)
