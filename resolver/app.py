"""
HTTP surface: GET /health and POST /resolve.

Run with `python run_server.py`, or directly:
    uvicorn resolver.app:create_app --factory --port 3000
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import SERVICE_NAME, Config, load_config
from .service import Resolver
from .utils import InvalidRequestError, init_logging

logger = logging.getLogger(__name__)

MISSING_URL_ERROR = "Missing google_news_url (string) in JSON body"
EXAMPLE_BODY = {"google_news_url": "https://news.google.com/rss/articles/CBMi...?oc=5"}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _bad_request() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"ok": False, "error": MISSING_URL_ERROR, "example": EXAMPLE_BODY},
    )


async def _read_json_body(request: Request, max_bytes: int) -> tuple[Optional[Any], Optional[JSONResponse]]:
    too_large = JSONResponse(
        status_code=413,
        content={"ok": False, "error": f"Request body exceeds {max_bytes} bytes"},
    )
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        return None, too_large

    raw = await request.body()
    if len(raw) > max_bytes:
        return None, too_large
    if not raw:
        return None, None
    try:
        return json.loads(raw), None
    except (ValueError, UnicodeDecodeError):
        return None, None


def create_app(cfg: Optional[Config] = None, resolver: Optional[Resolver] = None) -> FastAPI:
    cfg = cfg or load_config()
    init_logging(cfg.log_level)

    app = FastAPI(
        title="Google News Resolver",
        description="Resolves Google News article links to the publisher URL",
        version="1.0.0",
    )
    app.state.cfg = cfg
    app.state.resolver = resolver or Resolver(cfg)

    @app.get("/health")
    async def health():
        return {"ok": True, "service": SERVICE_NAME, "time": _utc_now_iso()}

    @app.post("/resolve")
    async def resolve(request: Request):
        body, error = await _read_json_body(request, cfg.max_body_bytes)
        if error is not None:
            return error

        google_news_url = body.get("google_news_url") if isinstance(body, dict) else None
        if not isinstance(google_news_url, str) or not google_news_url.strip():
            return _bad_request()

        try:
            outcome = await app.state.resolver.resolve(google_news_url)
        except InvalidRequestError:
            return _bad_request()
        except Exception as e:
            logger.exception("Resolution failed for %s", google_news_url)
            return JSONResponse(
                status_code=500,
                content={"ok": False, "google_news_url": google_news_url, "error": str(e) or repr(e)},
            )

        return {"ok": True, "google_news_url": google_news_url, **outcome.to_dict()}

    logger.info("%s app created (max_body_bytes=%d)", SERVICE_NAME, cfg.max_body_bytes)
    return app
