from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, asdict
from typing import AsyncIterator, Optional

from playwright.async_api import async_playwright, BrowserContext, Page, Error as PWError

from .config import Config
from .extractor import Method, extract_outbound
from .utils import NavigationError, best_effort

logger = logging.getLogger(__name__)

# Resource types aborted by the request filter
_HEAVY_RESOURCE_TYPES = frozenset({"image", "media", "font"})


@dataclass(frozen=True)
class AttemptResult:
    resolved_url: Optional[str]
    method: Method
    http_status: Optional[int]
    final_url: Optional[str]

    def to_dict(self) -> dict:
        return asdict(self)


def _browser_args(cfg: Config) -> list[str]:
    # sandbox flags are required inside containers
    args: list[str] = [
        "--no-sandbox",
        "--disable-setuid-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
    ]
    for a in getattr(cfg, "browser_args_extra", None) or ():
        if isinstance(a, str) and a.strip() and a.strip() not in args:
            args.append(a.strip())
    return args


async def _install_request_blocking(context: BrowserContext) -> None:
    async def route_handler(route, request):
        if request.resource_type in _HEAVY_RESOURCE_TYPES:
            return await route.abort()
        return await route.continue_()
    await context.route("**/*", route_handler)


async def _close_quietly(what: str, coro, timeout_ms: int) -> None:
    try:
        await asyncio.wait_for(coro, timeout=max(0.1, timeout_ms / 1000.0))
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("Error while closing %s: %s", what, e)


async def _release_session(pw, browser, context, page, timeout_ms: int) -> None:
    """
    Tear down in reverse order. Every step runs even if the task is
    cancelled mid-teardown; the cancellation is re-raised once all are done.
    """
    steps = (
        ("page", page, "close"),
        ("context", context, "close"),
        ("browser", browser, "close"),
        ("playwright", pw, "stop"),
    )
    cancelled = False
    for what, obj, method in steps:
        if obj is None:
            continue
        try:
            await _close_quietly(what, getattr(obj, method)(), timeout_ms)
        except asyncio.CancelledError:
            cancelled = True
    if cancelled:
        raise asyncio.CancelledError()


@asynccontextmanager
async def browser_session(cfg: Config) -> AsyncIterator[Page]:
    """
    One fully isolated session (driver, browser, context, page) for exactly
    one attempt. Everything is released on every exit path; a failed release
    is logged and never replaces the primary result or exception.
    """
    pw = browser = context = page = None
    try:
        pw = await async_playwright().start()
        proxy = {"server": cfg.proxy_server} if getattr(cfg, "proxy_server", None) else None
        browser = await pw.chromium.launch(
            headless=True,
            args=_browser_args(cfg),
            proxy=proxy,
        )
        context = await browser.new_context(
            user_agent=cfg.user_agent,
            locale=cfg.locale,
            timezone_id=cfg.timezone_id,
            viewport={"width": 1366, "height": 900},
            java_script_enabled=True,
            extra_http_headers={"Accept-Language": cfg.accept_language},
        )
        context.set_default_timeout(cfg.page_load_timeout_ms)
        context.set_default_navigation_timeout(cfg.page_load_timeout_ms)

        if cfg.block_heavy_resources:
            await _install_request_blocking(context)

        page = await context.new_page()
        yield page
    finally:
        await _release_session(pw, browser, context, page, cfg.close_timeout_ms)


async def load_and_extract(url: str, cfg: Config) -> AttemptResult:
    """
    One attempt: navigate, give client-side redirects a chance, then decide
    the outbound URL while the session is still open.

    Raises NavigationError when navigation itself fails (timeout, DNS, net error).
    """
    async with browser_session(cfg) as page:
        try:
            resp = await page.goto(
                url,
                wait_until=cfg.navigation_wait_until,
                timeout=cfg.page_load_timeout_ms,
            )
        except PWError as e:
            logger.info("Navigation failed url=%s: %s", url, e)
            raise NavigationError(url, e) from e

        if cfg.redirect_grace_ms > 0:
            await asyncio.sleep(cfg.redirect_grace_ms / 1000.0)

        # a page that never goes idle is normal here (long-polling, analytics)
        if cfg.network_idle_timeout_ms > 0:
            await best_effort(
                page.wait_for_load_state("networkidle", timeout=cfg.network_idle_timeout_ms),
                what="networkidle",
            )

        final_url = page.url
        status = resp.status if resp is not None else None

        resolved, method = await extract_outbound(
            page,
            final_url,
            aggregator_host=cfg.aggregator_host,
            deny_hosts=cfg.deny_hosts,
        )
        logger.debug(
            "Attempt finished url=%s final_url=%s status=%s method=%s",
            url, final_url, status, method,
        )
        return AttemptResult(
            resolved_url=resolved,
            method=method,
            http_status=status,
            final_url=final_url,
        )
