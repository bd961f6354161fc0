from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from resolver.config import SERVICE_NAME, load_config
from resolver.service import Resolver
from resolver.utils import init_logging

logger = logging.getLogger(SERVICE_NAME)


# ----------------------------
# CLI parsing
# ----------------------------

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Resolve Google News article links to publisher URLs (HTTP service or one-shot)"
    )
    p.add_argument(
        "--url",
        action="append",
        default=[],
        help="Resolve this URL and print a JSON line instead of serving HTTP. Repeatable.",
    )
    p.add_argument("--host", type=str, default=None, help="Bind address (default: $HOST or 0.0.0.0)")
    p.add_argument("--port", type=int, default=None, help="Listen port (default: $PORT or 3000)")
    p.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    return p.parse_args(argv)


async def _resolve_urls(urls: List[str], resolver: Resolver) -> int:
    failures = 0
    for u in urls:
        try:
            outcome = await resolver.resolve(u)
            line = {"ok": True, "google_news_url": u, **outcome.to_dict()}
        except Exception as e:
            failures += 1
            logger.error("Failed to resolve %s: %s", u, e)
            line = {"ok": False, "google_news_url": u, "error": str(e) or repr(e)}
        print(json.dumps(line, ensure_ascii=False), flush=True)
    return 1 if failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    cfg = load_config()
    if args.log_level:
        cfg = replace(cfg, log_level=args.log_level)
    init_logging(cfg.log_level)

    if args.url:
        return asyncio.run(_resolve_urls(args.url, Resolver(cfg)))

    import uvicorn
    from resolver.app import create_app

    host = args.host or cfg.host
    port = args.port or cfg.port
    logger.info("%s listening on %s:%d", SERVICE_NAME, host, port)
    uvicorn.run(create_app(cfg), host=host, port=port, log_level=cfg.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
