import pytest

from resolver.normalizer import normalize_google_news_url


def test_rss_article_rewritten_to_article_page():
    assert (
        normalize_google_news_url("https://news.google.com/rss/articles/ABC?oc=5")
        == "https://news.google.com/articles/ABC?oc=5"
    )


def test_insecure_rss_article_upgraded_to_https():
    assert (
        normalize_google_news_url("http://news.google.com/rss/articles/ABC?oc=5")
        == "https://news.google.com/articles/ABC?oc=5"
    )


def test_other_hosts_get_path_segment_rewrite():
    assert (
        normalize_google_news_url("https://mirror.example/rss/articles/ABC")
        == "https://mirror.example/articles/ABC"
    )


def test_article_page_left_alone():
    u = "https://news.google.com/articles/ABC?hl=en-US&gl=US"
    assert normalize_google_news_url(u) == u


@pytest.mark.parametrize("value", [None, "", 42, ["https://news.google.com/rss/articles/x"]])
def test_non_string_or_empty_passthrough(value):
    assert normalize_google_news_url(value) is value


@pytest.mark.parametrize("value", [
    "https://news.google.com/rss/articles/ABC?oc=5",
    "http://news.google.com/rss/articles/ABC",
    "/rss/rss/articles/articles/",
    "https://news.google.com/rss/rss/articles/articles/x",
    "no url at all",
    "https://example.com/story",
])
def test_idempotent(value):
    once = normalize_google_news_url(value)
    assert normalize_google_news_url(once) == once
