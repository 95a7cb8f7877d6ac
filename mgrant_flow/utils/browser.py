"""Browser helpers for the single continuous-flow session."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium for the run."""
    return await playwright.chromium.launch(
        headless=headless,
        args=[
            "--disable-blink-features=AutomationControlled",
        ],
    )


async def create_flow_context(
    browser: Browser,
    viewport: dict,
    **options,
) -> BrowserContext:
    """Create the one browser context the whole run shares.

    ``options`` are passed to ``browser.new_context`` and override the
    defaults below.
    """
    context_kwargs: dict = {
        "viewport": viewport,
        "ignore_https_errors": True,
        "permissions": ["geolocation", "notifications"],
        "bypass_csp": True,
        "reduced_motion": "reduce",
        "locale": "en-US",
    }
    context_kwargs.update(options)
    return await browser.new_context(**context_kwargs)


async def settle(page: Page, ms: Optional[int]) -> None:
    """Give a single-page app time to render after navigation."""
    if ms:
        await page.wait_for_timeout(ms)
