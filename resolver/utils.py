from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Awaitable, Iterable, Optional, Tuple
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# ========== Environment & Logging helpers ==========

def getenv_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return v if v is not None and v.strip() else default

def getenv_int(name: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        val = int(raw)
    except ValueError:
        return default
    if min_val is not None:
        val = max(min_val, val)
    if max_val is not None:
        val = min(max_val, val)
    return val

def getenv_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


# parse CSV-ish envs into tuples (trim blanks)
def getenv_csv(name: str, default_csv: str) -> Tuple[str, ...]:
    raw = getenv_str(name, default_csv)
    parts = [x.strip() for x in raw.split(",")]
    return tuple(p for p in parts if p)

def init_logging(level: int | str = logging.INFO) -> None:
    """
    Console logger on root. Call once early (run_server.py / create_app).
    Repeated calls only adjust the level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    root = logging.getLogger()
    if not any(getattr(h, "_resolver_console", False) for h in root.handlers):
        ch = logging.StreamHandler(sys.stderr)
        ch.setFormatter(logging.Formatter(
            fmt="%(levelname)s %(asctime)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        ch._resolver_console = True  # type: ignore[attr-defined]
        root.addHandler(ch)
    root.setLevel(level)

# ========== Exceptions ==========

class ResolverError(Exception):
    """Base class for resolution failures."""

class NavigationError(ResolverError):
    """Navigation failed before a response arrived (timeout, DNS, net::ERR_*)."""

    def __init__(self, url: str, cause: BaseException | str):
        self.url = url
        self.cause = cause
        super().__init__(f"Navigation to {url} failed: {cause}")


class InvalidRequestError(ResolverError):
    """Input rejected before any browser work starts."""

# ========== Best-effort helpers ==========

async def best_effort(aw: Awaitable, *, what: str, timeout_ms: Optional[int] = None) -> bool:
    """
    Await `aw`, logging and discarding any failure (including a timeout).
    Returns True when it completed cleanly. Used for sub-steps whose failure
    must never replace the primary result: network-idle waits, session teardown.
    """
    try:
        if timeout_ms is not None:
            await asyncio.wait_for(aw, timeout=max(0.1, timeout_ms / 1000.0))
        else:
            await aw
        return True
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug("best-effort step '%s' failed: %s", what, e)
        return False

# ========== URL & host helpers ==========

def is_http_url(url: str) -> bool:
    try:
        p = urlparse(url)
        return p.scheme in ("http", "https") and bool(p.netloc)
    except Exception:
        return False

def host_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except Exception:
        return ""

def host_matches(host: str, domains: Iterable[str]) -> bool:
    """True if host equals one of `domains` or is a subdomain of it."""
    host = (host or "").lower().rstrip(".")
    if not host:
        return False
    for d in domains:
        d = (d or "").lower().strip().rstrip(".")
        if d and (host == d or host.endswith("." + d)):
            return True
    return False
