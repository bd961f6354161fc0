from __future__ import annotations

import logging
from typing import Iterable, Literal, Optional, Sequence, Tuple

from .utils import host_of, host_matches, is_http_url

logger = logging.getLogger(__name__)

Method = Literal["final_url", "dom_link", "none"]

# Priority order. Explicit nofollow/new-tab markers are the most reliable signal
# of the publisher link on the aggregator's article template; the broader
# selectors carry more false positives.
OUTBOUND_SELECTORS: Tuple[str, ...] = (
    'a[rel~="nofollow"]',
    'a[target="_blank"]',
    'article a[href^="http"]',
    'main a[href^="http"]',
    'a[href^="http"]',
)

# `a.href` is the resolved absolute URL, not the raw attribute
_HREFS_JS = "els => els.map(a => a.href).filter(Boolean)"


def is_outbound_candidate(href: str, *, aggregator_host: str, deny_hosts: Iterable[str] = ()) -> bool:
    """
    Accept only absolute http(s) links that leave the aggregator and do not
    point at an account/login host. Rejects javascript:, mailto:, data: etc.
    """
    if not href or not is_http_url(href):
        return False
    host = host_of(href)
    if host_matches(host, (aggregator_host,)):
        return False
    if host_matches(host, deny_hosts):
        return False
    return True


def left_aggregator(
    final_url: Optional[str],
    aggregator_host: str,
    deny_hosts: Iterable[str] = (),
) -> bool:
    """
    True when the page really navigated to a publisher. The URL must not
    mention the aggregator host anywhere (consent and login interstitials
    carry it in their continue= parameter) and must not sit on a deny host.
    """
    if not final_url or not is_http_url(final_url):
        return False
    if aggregator_host and aggregator_host.lower() in final_url.lower():
        return False
    return not host_matches(host_of(final_url), deny_hosts)


async def _hrefs_for(page, selector: str) -> list[str]:
    try:
        hrefs = await page.eval_on_selector_all(selector, _HREFS_JS)
    except Exception as e:
        logger.debug("DOM query failed selector=%s: %s", selector, e)
        return []
    return [h for h in (hrefs or []) if isinstance(h, str)]


async def find_outbound_link(
    page,
    *,
    aggregator_host: str,
    deny_hosts: Iterable[str] = (),
    selectors: Sequence[str] = OUTBOUND_SELECTORS,
) -> Optional[str]:
    deny_hosts = tuple(deny_hosts)
    for sel in selectors:
        for href in await _hrefs_for(page, sel):
            if is_outbound_candidate(href, aggregator_host=aggregator_host, deny_hosts=deny_hosts):
                logger.debug("Outbound link via selector=%s: %s", sel, href)
                return href
    return None


async def extract_outbound(
    page,
    final_url: Optional[str],
    *,
    aggregator_host: str = "news.google.com",
    deny_hosts: Iterable[str] = ("accounts.google.com",),
    selectors: Sequence[str] = OUTBOUND_SELECTORS,
) -> Tuple[Optional[str], Method]:
    """
    Decide the outbound URL for a loaded page.

    Fast path: the page already navigated off the aggregator, so its current
    URL is the answer and the DOM is not touched. Otherwise scan anchors in
    selector priority order and take the first acceptable href. Finding
    nothing is a valid outcome, reported as (None, "none").
    """
    deny_hosts = tuple(deny_hosts)
    if left_aggregator(final_url, aggregator_host, deny_hosts):
        return final_url, "final_url"

    href = await find_outbound_link(
        page, aggregator_host=aggregator_host, deny_hosts=deny_hosts, selectors=selectors
    )
    if href:
        return href, "dom_link"
    return None, "none"
