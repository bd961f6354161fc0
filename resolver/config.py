from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Tuple
from .utils import getenv_bool, getenv_int, getenv_str, getenv_csv

SERVICE_NAME = "google-news-resolver"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


# ---------- Config dataclass ----------
@dataclass(frozen=True)
class Config:
    # HTTP surface
    host: str
    port: int
    max_body_bytes: int
    log_level: str

    # Browser session
    user_agent: str
    locale: str
    timezone_id: str
    accept_language: str
    block_heavy_resources: bool
    proxy_server: str | None
    browser_args_extra: Tuple[str, ...]

    # Navigation & settling
    page_load_timeout_ms: int
    navigation_wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"]
    redirect_grace_ms: int                      # unconditional pause after goto
    network_idle_timeout_ms: int                # best-effort networkidle wait
    close_timeout_ms: int                       # per-step bound when tearing down a session

    # Retry / backoff
    retry_max_attempts: int
    retry_base_delay_ms: int                    # delay before attempt n is base * 2**(n-1) + jitter
    retry_jitter_ms: int
    retry_statuses: Tuple[int, ...]
    retry_navigation_errors: bool

    # Outbound extraction
    aggregator_host: str
    deny_hosts: Tuple[str, ...]                 # account/login hosts never accepted as outbound


def _status_tuple(raw: Tuple[str, ...]) -> Tuple[int, ...]:
    out = []
    for s in raw:
        try:
            out.append(int(s))
        except ValueError:
            continue
    return tuple(out)


# ---------- Loader ----------
def load_config() -> Config:
    wait_until = getenv_str("NAV_WAIT_UNTIL", "domcontentloaded")
    if wait_until not in ("load", "domcontentloaded", "networkidle", "commit"):
        wait_until = "domcontentloaded"

    cfg = Config(
        host=getenv_str("HOST", "0.0.0.0"),
        port=getenv_int("PORT", 3000, 1, 65535),
        max_body_bytes=getenv_int("MAX_BODY_BYTES", 1024 * 1024, 1024, 16 * 1024 * 1024),
        log_level=getenv_str("LOG_LEVEL", "INFO").upper(),

        user_agent=getenv_str("RESOLVER_USER_AGENT", DEFAULT_USER_AGENT),
        locale=getenv_str("RESOLVER_LOCALE", "en-US"),
        timezone_id=getenv_str("RESOLVER_TIMEZONE", "America/New_York"),
        accept_language=getenv_str("RESOLVER_ACCEPT_LANGUAGE", "en-US,en;q=0.9"),
        block_heavy_resources=getenv_bool("BLOCK_HEAVY_RESOURCES", True),
        proxy_server=getenv_str("PROXY_SERVER", "") or None,
        browser_args_extra=getenv_csv("BROWSER_ARGS_EXTRA", ""),

        page_load_timeout_ms=getenv_int("PAGE_LOAD_TIMEOUT_MS", 25000, 5000, 120000),
        navigation_wait_until=wait_until,
        redirect_grace_ms=getenv_int("REDIRECT_GRACE_MS", 1500, 0, 10000),
        network_idle_timeout_ms=getenv_int("NETWORK_IDLE_TIMEOUT_MS", 8000, 0, 60000),
        close_timeout_ms=getenv_int("CLOSE_TIMEOUT_MS", 3000, 100, 30000),

        retry_max_attempts=getenv_int("RETRY_MAX_ATTEMPTS", 4, 1, 10),
        retry_base_delay_ms=getenv_int("RETRY_BASE_DELAY_MS", 800, 0, 60000),
        retry_jitter_ms=getenv_int("RETRY_JITTER_MS", 400, 0, 10000),
        retry_statuses=_status_tuple(getenv_csv("RETRY_STATUSES", "429,503")),
        retry_navigation_errors=getenv_bool("RETRY_NAVIGATION_ERRORS", True),

        aggregator_host=getenv_str("AGGREGATOR_HOST", "news.google.com").lower(),
        deny_hosts=tuple(h.lower() for h in getenv_csv("DENY_HOSTS", "accounts.google.com")),
    )
    return cfg
