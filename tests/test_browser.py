import asyncio
from dataclasses import replace

import pytest
from playwright.async_api import Error as PWError

from resolver.browser import load_and_extract, browser_session, AttemptResult
from resolver.config import load_config
from resolver.utils import NavigationError


def _cfg(**overrides):
    base = replace(
        load_config(),
        redirect_grace_ms=0,
        network_idle_timeout_ms=100,
        close_timeout_ms=500,
        block_heavy_resources=True,
        proxy_server=None,
    )
    return replace(base, **overrides)


class StubResponse:
    def __init__(self, status):
        self.status = status


class StubPage:
    def __init__(self, *, landed_url, status=200, anchors=None, goto_raises=None, idle_raises=None):
        self.url = "about:blank"
        self.closed = False
        self._landed_url = landed_url
        self._status = status
        self._anchors = anchors or {}
        self._goto_raises = goto_raises
        self._idle_raises = idle_raises
        self.goto_kwargs = None
        self.dom_queries = []
        self.events = []

    async def goto(self, url, **kwargs):
        self.goto_kwargs = dict(kwargs, url=url)
        self.events.append(("goto", url))
        if self._goto_raises:
            raise self._goto_raises
        self.url = self._landed_url
        return StubResponse(self._status) if self._status is not None else None

    async def wait_for_load_state(self, state, timeout=None):
        self.events.append(("load_state", state, timeout))
        if self._idle_raises:
            raise self._idle_raises

    async def eval_on_selector_all(self, selector, script):
        self.dom_queries.append(selector)
        return list(self._anchors.get(selector, []))

    async def close(self):
        self.closed = True


class StubContext:
    def __init__(self, page, close_raises=None):
        self.page = page
        self.closed = False
        self._routes = []
        self._default_timeout = None
        self._default_navigation_timeout = None
        self._close_raises = close_raises

    async def route(self, pattern, handler):
        self._routes.append((pattern, handler))

    def set_default_timeout(self, ms):
        self._default_timeout = ms

    def set_default_navigation_timeout(self, ms):
        self._default_navigation_timeout = ms

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True
        if self._close_raises:
            raise self._close_raises


class StubBrowser:
    def __init__(self, context):
        self.context = context
        self.closed = False
        self.context_kwargs = None

    async def new_context(self, **kwargs):
        self.context_kwargs = kwargs
        return self.context

    async def close(self):
        self.closed = True


class StubChromium:
    def __init__(self, browser):
        self.browser = browser
        self._launch_kwargs = None

    async def launch(self, **kwargs):
        self._launch_kwargs = kwargs
        return self.browser


class StubPlaywright:
    def __init__(self, chromium):
        self.chromium = chromium
        self.stopped = False

    async def stop(self):
        self.stopped = True


class AsyncPlaywrightFactory:
    def __init__(self, pw):
        self._pw = pw

    async def start(self):
        return self._pw


def _install(monkeypatch, page, **ctx_kwargs):
    context = StubContext(page, **ctx_kwargs)
    browser = StubBrowser(context=context)
    chromium = StubChromium(browser=browser)
    pw = StubPlaywright(chromium=chromium)

    import resolver.browser as browser_mod
    monkeypatch.setattr(browser_mod, "async_playwright", lambda: AsyncPlaywrightFactory(pw))
    return pw, chromium, browser, context


def _assert_released(pw, browser, context, page):
    assert page.closed is True
    assert context.closed is True
    assert browser.closed is True
    assert pw.stopped is True


@pytest.mark.asyncio
async def test_session_launch_and_context_settings(monkeypatch):
    cfg = _cfg(proxy_server="http://localhost:8888", browser_args_extra=("--lang=en-US",))
    page = StubPage(landed_url="https://example.com/story")
    pw, chromium, browser, context = _install(monkeypatch, page)

    async with browser_session(cfg) as p:
        assert p is page

    kw = chromium._launch_kwargs
    assert kw["headless"] is True
    for flag in ("--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage", "--disable-gpu"):
        assert flag in kw["args"]
    assert "--lang=en-US" in kw["args"]
    assert kw["proxy"] == {"server": cfg.proxy_server}

    ck = browser.context_kwargs
    assert ck["user_agent"] == cfg.user_agent
    assert ck["locale"] == cfg.locale
    assert ck["timezone_id"] == cfg.timezone_id
    assert ck["extra_http_headers"]["Accept-Language"] == cfg.accept_language

    assert context._default_timeout == cfg.page_load_timeout_ms
    assert context._default_navigation_timeout == cfg.page_load_timeout_ms
    _assert_released(pw, browser, context, page)


@pytest.mark.asyncio
async def test_request_filter_aborts_heavy_resources(monkeypatch):
    page = StubPage(landed_url="https://example.com/story")
    pw, chromium, browser, context = _install(monkeypatch, page)

    async with browser_session(_cfg()):
        pass

    assert len(context._routes) == 1
    pattern, handler = context._routes[0]
    assert pattern == "**/*"

    class Route:
        def __init__(self):
            self.action = None

        async def abort(self):
            self.action = "abort"

        async def continue_(self):
            self.action = "continue"

    class Req:
        def __init__(self, rtype):
            self.resource_type = rtype

    for rtype, expected in (("image", "abort"), ("font", "abort"), ("media", "abort"),
                            ("document", "continue"), ("script", "continue")):
        r = Route()
        await handler(r, Req(rtype))
        assert r.action == expected, rtype


@pytest.mark.asyncio
async def test_request_filter_can_be_disabled(monkeypatch):
    page = StubPage(landed_url="https://example.com/story")
    pw, chromium, browser, context = _install(monkeypatch, page)

    async with browser_session(_cfg(block_heavy_resources=False)):
        pass

    assert context._routes == []
    assert chromium._launch_kwargs["proxy"] is None


@pytest.mark.asyncio
async def test_fast_path_skips_dom(monkeypatch):
    cfg = _cfg()
    page = StubPage(landed_url="https://example.com/story", status=200)
    pw, chromium, browser, context = _install(monkeypatch, page)

    result = await load_and_extract("https://news.google.com/articles/ABC?oc=5", cfg)

    assert result == AttemptResult(
        resolved_url="https://example.com/story",
        method="final_url",
        http_status=200,
        final_url="https://example.com/story",
    )
    assert page.dom_queries == []
    assert page.goto_kwargs["wait_until"] == "domcontentloaded"
    assert page.goto_kwargs["timeout"] == cfg.page_load_timeout_ms
    _assert_released(pw, browser, context, page)


@pytest.mark.asyncio
async def test_dom_fallback_when_still_on_aggregator(monkeypatch):
    landed = "https://news.google.com/articles/ABC?oc=5"
    page = StubPage(
        landed_url=landed,
        status=200,
        anchors={'a[target="_blank"]': ["https://publisher.example/a"]},
    )
    pw, chromium, browser, context = _install(monkeypatch, page)

    result = await load_and_extract(landed, _cfg())

    assert result.resolved_url == "https://publisher.example/a"
    assert result.method == "dom_link"
    assert result.final_url == landed
    _assert_released(pw, browser, context, page)


@pytest.mark.asyncio
async def test_missing_response_gives_null_status(monkeypatch):
    landed = "https://news.google.com/articles/ABC"
    page = StubPage(landed_url=landed, status=None)
    _install(monkeypatch, page)

    result = await load_and_extract(landed, _cfg())

    assert result.http_status is None
    assert result.method == "none"
    assert result.resolved_url is None


@pytest.mark.asyncio
async def test_networkidle_timeout_is_not_fatal(monkeypatch):
    page = StubPage(
        landed_url="https://example.com/story",
        idle_raises=PWError("Timeout 100ms exceeded"),
    )
    _install(monkeypatch, page)

    result = await load_and_extract("https://news.google.com/articles/X", _cfg())
    assert result.method == "final_url"


@pytest.mark.asyncio
async def test_navigation_error_is_wrapped_and_session_released(monkeypatch):
    page = StubPage(
        landed_url="https://example.com/story",
        goto_raises=PWError("net::ERR_NAME_NOT_RESOLVED"),
    )
    pw, chromium, browser, context = _install(monkeypatch, page)

    with pytest.raises(NavigationError) as ei:
        await load_and_extract("https://news.google.com/articles/X", _cfg())

    assert ei.value.url == "https://news.google.com/articles/X"
    assert "ERR_NAME_NOT_RESOLVED" in str(ei.value)
    _assert_released(pw, browser, context, page)


@pytest.mark.asyncio
async def test_release_failure_does_not_mask_result(monkeypatch):
    page = StubPage(landed_url="https://example.com/story")
    pw, chromium, browser, context = _install(
        monkeypatch, page, close_raises=RuntimeError("context already gone")
    )

    result = await load_and_extract("https://news.google.com/articles/X", _cfg())

    assert result.resolved_url == "https://example.com/story"
    # later steps still ran
    assert browser.closed is True
    assert pw.stopped is True


@pytest.mark.asyncio
async def test_redirect_grace_pause_then_networkidle_wait(monkeypatch):
    cfg = _cfg(redirect_grace_ms=1500, network_idle_timeout_ms=8000)
    page = StubPage(landed_url="https://example.com/story")
    _install(monkeypatch, page)

    import resolver.browser as browser_mod

    async def fake_sleep(seconds):
        page.events.append(("sleep", seconds))

    monkeypatch.setattr(browser_mod.asyncio, "sleep", fake_sleep)

    await load_and_extract("https://news.google.com/articles/X", cfg)

    assert page.events == [
        ("goto", "https://news.google.com/articles/X"),
        ("sleep", 1.5),
        ("load_state", "networkidle", 8000),
    ]


@pytest.mark.asyncio
async def test_zero_grace_and_idle_skip_both_waits(monkeypatch):
    cfg = _cfg(redirect_grace_ms=0, network_idle_timeout_ms=0)
    page = StubPage(landed_url="https://example.com/story")
    _install(monkeypatch, page)

    await load_and_extract("https://news.google.com/articles/X", cfg)

    assert page.events == [("goto", "https://news.google.com/articles/X")]


@pytest.mark.asyncio
async def test_cancel_during_teardown_still_closes_everything(monkeypatch):
    page = StubPage(landed_url="https://example.com/story")
    pw, chromium, browser, context = _install(
        monkeypatch, page, close_raises=asyncio.CancelledError()
    )

    with pytest.raises(asyncio.CancelledError):
        await load_and_extract("https://news.google.com/articles/X", _cfg())

    assert page.closed is True
    assert context.closed is True
    assert browser.closed is True
    assert pw.stopped is True
