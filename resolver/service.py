from __future__ import annotations

import logging
import time
from dataclasses import dataclass, asdict
from typing import Awaitable, Callable, Optional

from .browser import AttemptResult, load_and_extract
from .config import Config, load_config
from .extractor import Method
from .gate import ResolutionGate
from .normalizer import normalize_google_news_url
from .retry import RetryController
from .utils import InvalidRequestError

logger = logging.getLogger(__name__)

LoaderFn = Callable[[str, Config], Awaitable[AttemptResult]]


@dataclass(frozen=True)
class ResolveOutcome:
    resolved_url: Optional[str]
    method: Method
    http_status: Optional[int]
    final_url: Optional[str]
    attempt: int
    target_url: str

    @property
    def blocked(self) -> bool:
        return self.http_status == 429

    @classmethod
    def from_attempt(cls, result: AttemptResult, *, attempt: int, target_url: str) -> "ResolveOutcome":
        return cls(
            resolved_url=result.resolved_url,
            method=result.method,
            http_status=result.http_status,
            final_url=result.final_url,
            attempt=attempt,
            target_url=target_url,
        )

    def to_dict(self) -> dict:
        d = asdict(self)
        d["blocked"] = self.blocked
        return d


class Resolver:
    """
    Gate → retry controller → (normalize, load, extract) per attempt.
    One instance per process; the gate lives here.
    """

    def __init__(
        self,
        cfg: Optional[Config] = None,
        *,
        loader: LoaderFn = load_and_extract,
        gate: Optional[ResolutionGate] = None,
        controller: Optional[RetryController] = None,
    ):
        self.cfg = cfg or load_config()
        self.loader = loader
        self.gate = gate or ResolutionGate()
        self.controller = controller or RetryController.from_config(self.cfg)

    async def resolve(self, google_news_url: str) -> ResolveOutcome:
        if not isinstance(google_news_url, str) or not google_news_url.strip():
            raise InvalidRequestError("google_news_url must be a non-empty string")

        target_url = normalize_google_news_url(google_news_url.strip())

        async with self.gate:
            t0 = time.perf_counter()
            logger.info("Resolving %s", target_url)

            async def _attempt(n: int) -> AttemptResult:
                return await self.loader(target_url, self.cfg)

            result, attempts = await self.controller.run(_attempt)

        outcome = ResolveOutcome.from_attempt(result, attempt=attempts, target_url=target_url)
        logger.info(
            "Resolved %s -> %s method=%s status=%s attempts=%d in %.2fs",
            target_url, outcome.resolved_url, outcome.method, outcome.http_status,
            attempts, time.perf_counter() - t0,
        )
        return outcome
