import asyncio
from contextlib import asynccontextmanager

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from dmh_scraper import config

COOKIE_BUTTONS = [
    'button:has-text("I Accept")',
    'button:has-text("Accept all")',
    'button:has-text("Accept All")',
    "#onetrust-accept-btn-handler",
]


async def with_deadline(coro, ms, label="task"):
    """Await coro for at most ms milliseconds; the timeout names the step."""
    try:
        return await asyncio.wait_for(coro, ms / 1000)
    except asyncio.TimeoutError:
        raise asyncio.TimeoutError(f"timeout: {label} after {ms}ms") from None


@asynccontextmanager
async def browser_context(headless=None):
    """Launch Chromium and yield a fresh context; everything is closed on exit."""
    if headless is None:
        headless = config.HEADLESS
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=headless)
        context = await browser.new_context(
            user_agent=config.USER_AGENT,
            locale="en-GB",
            timezone_id=config.TZ,
        )
        try:
            yield context
        finally:
            for closable in (context, browser):
                try:
                    await closable.close()
                except PlaywrightError:
                    pass


async def settle(page, timeout_ms=config.NET_IDLE_MS):
    """Wait for network idle, giving up quietly after timeout_ms."""
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightError:
        pass


async def goto(page, url, timeout_ms=config.NAV_TIMEOUT_MS, idle_ms=5000):
    await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
    await settle(page, idle_ms)


async def accept_cookies(page):
    for selector in COOKIE_BUTTONS:
        try:
            button = await page.query_selector(selector)
        except PlaywrightError:
            continue
        if button:
            try:
                await button.click(timeout=3000)
            except PlaywrightError:
                pass
            break


async def expand(page, passes=config.EXPAND_PASSES):
    """Scroll to the bottom until the document stops growing, so lazy cards load."""
    previous = -1
    for _ in range(passes):
        height = await page.evaluate("() => document.body.scrollHeight")
        if height == previous:
            break
        previous = height
        await page.mouse.wheel(0, height)
        await settle(page, 1200)
        await asyncio.sleep(0.2)


async def render(context, url):
    """Browser-rendered HTML of a listing page, fully scrolled."""
    page = await context.new_page()
    try:
        await goto(page, url)
        await accept_cookies(page)
        await expand(page)
        return await page.content()
    finally:
        try:
            await page.close()
        except PlaywrightError:
            pass


async def run_pool(items, pages, worker):
    """
    Run worker(page, index, item) for every item, lending each call one page
    from a fixed pool. Results come back in item order.
    """
    free = asyncio.Queue()
    for page in pages:
        free.put_nowait(page)

    async def run(index, item):
        page = await free.get()
        try:
            return await worker(page, index, item)
        finally:
            free.put_nowait(page)

    return await asyncio.gather(*(run(i, item) for i, item in enumerate(items)))
