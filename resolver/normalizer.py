from __future__ import annotations

from typing import Any

# Applied in order; plain substring replacement, no URL parsing.
_REWRITES = (
    ("https://news.google.com/rss/articles/", "https://news.google.com/articles/"),
    ("http://news.google.com/rss/articles/", "https://news.google.com/articles/"),
    ("/rss/articles/", "/articles/"),
)


def normalize_google_news_url(url: Any) -> Any:
    """
    Rewrite an RSS article link into the article-page form, which is the one
    that carries the outbound link. Non-string or empty input is returned as-is.
    """
    if not isinstance(url, str) or not url:
        return url
    # every rewrite shortens the string, so this reaches a fixed point
    prev = None
    while prev != url:
        prev = url
        for old, new in _REWRITES:
            url = url.replace(old, new)
    return url
