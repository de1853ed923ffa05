# -*- coding: utf-8 -*-
"""
network_mock 用例共用的桩对象与 fixture。

StubPage 模拟 Playwright Page 中 mock 引擎用到的那部分行为：
- route / unroute：回调按注册逆序调用，fallback 交给下一个匹配的回调，都不处理时走“真实网络”；
- wait_for_timeout：推进虚拟时钟，并执行这段时间内排好的事件（发请求 / 关闭页面）；
- on("close") / close()。
这样引擎的单元测试不需要真实浏览器，也不需要真的等待。
"""

import fnmatch
import heapq
import itertools
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from framework.core.config_loader import MockSettings
from framework.mock.synthesizer import ResponseSynthesizer
from utils.network_utils import NetworkMocker

FIXED_NOW = datetime(2024, 5, 1, 8, 0, 0, tzinfo=timezone.utc)


class StubRequest:
    def __init__(self, method: str, url: str, headers: Optional[Dict[str, str]] = None, body: Optional[str] = None):
        self.method = method.upper()
        self.url = url
        # Playwright 的 request.headers 的 key 都是小写
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.post_data = body


class StubRoute:
    def __init__(self, page: "StubPage", request: StubRequest):
        self._page = page
        self.request = request
        self.action: Optional[str] = None
        self.fulfilled: Dict[str, Any] = {}

    def fulfill(self, status: int = 200, headers: Optional[Dict[str, str]] = None, body: str = "") -> None:
        if self._page.fulfill_error is not None:
            raise self._page.fulfill_error
        self.action = "fulfill"
        self.fulfilled = {"status": status, "headers": dict(headers or {}), "body": body}

    def fallback(self) -> None:
        self.action = "fallback"


class StubResponse:
    def __init__(self, status: int, headers: Dict[str, str], body: str, mocked: bool, elapsed_ms: float):
        self.status = status
        self.headers = headers
        self.body = body
        self.mocked = mocked
        self.elapsed_ms = elapsed_ms

    def json(self) -> Any:
        return json.loads(self.body)


def _url_matches(matcher: Any, url: str) -> bool:
    if isinstance(matcher, str):
        return url == matcher or fnmatch.fnmatchcase(url, matcher)
    return matcher.search(url) is not None


class StubPage:
    def __init__(self) -> None:
        self.now_ms = 0.0
        self.closed = False
        self.fulfill_error: Optional[Exception] = None
        self.routes: List[tuple] = []
        self.network_requests: List[StubRequest] = []
        self.scheduled_responses: List[StubResponse] = []
        self.sleeps: List[float] = []
        self._events: List[tuple] = []
        self._seq = itertools.count()
        self._close_listeners: List[Callable] = []

    # ---- Page 接口 ----
    def route(self, url: Any, handler: Callable) -> None:
        self._ensure_open()
        self.routes.insert(0, (url, handler))

    def unroute(self, url: Any, handler: Optional[Callable] = None) -> None:
        self.routes = [
            (u, h) for (u, h) in self.routes if not (u == url and (handler is None or h is handler))
        ]

    def on(self, event: str, callback: Callable) -> None:
        if event == "close":
            self._close_listeners.append(callback)

    def wait_for_timeout(self, timeout: float) -> None:
        self._ensure_open()
        self.sleeps.append(timeout)
        target = self.now_ms + timeout
        while self._events and self._events[0][0] <= target:
            at, _, action = heapq.heappop(self._events)
            self.now_ms = round(max(self.now_ms, at), 6)
            action()
            self._ensure_open()
        # 取整，截止时间比较不受浮点误差影响
        self.now_ms = round(max(self.now_ms, target), 6)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for callback in self._close_listeners:
            callback(self)

    # ---- 测试辅助 ----
    def clock(self) -> float:
        return self.now_ms / 1000

    def send(self, method: str, url: str, headers: Optional[Dict[str, str]] = None, body: Optional[str] = None) -> StubResponse:
        """模拟页面发出一个请求，返回最终拿到的响应。"""
        request = StubRequest(method, url, headers, body)
        started = self.now_ms
        for matcher, handler in list(self.routes):
            if not _url_matches(matcher, url):
                continue
            route = StubRoute(self, request)
            handler(route, request)
            if route.action == "fulfill":
                return StubResponse(mocked=True, elapsed_ms=self.now_ms - started, **route.fulfilled)
            if route.action is None:
                raise AssertionError(f"路由回调既没有 fulfill 也没有 fallback: {url}")

        self.network_requests.append(request)
        return StubResponse(
            status=200,
            headers={"content-type": "application/json"},
            body=json.dumps({"source": "network", "url": url}),
            mocked=False,
            elapsed_ms=self.now_ms - started,
        )

    def schedule(self, at_ms: float, action: Callable[[], Any]) -> None:
        heapq.heappush(self._events, (at_ms, next(self._seq), action))

    def schedule_request(self, at_ms: float, method: str, url: str, headers: Optional[Dict[str, str]] = None) -> None:
        self.schedule(at_ms, lambda: self.scheduled_responses.append(self.send(method, url, headers)))

    def schedule_close(self, at_ms: float) -> None:
        self.schedule(at_ms, self.close)

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")


@pytest.fixture
def stub_page() -> StubPage:
    return StubPage()


@pytest.fixture
def stub_settings() -> MockSettings:
    return MockSettings(poll_interval_ms=100, wait_timeout_ms=1000, slow_delay_ms=500)


@pytest.fixture
def fixed_synthesizer() -> ResponseSynthesizer:
    return ResponseSynthesizer(clock=lambda: FIXED_NOW)


@pytest.fixture
def net_mocker(stub_page: StubPage, stub_settings: MockSettings, fixed_synthesizer: ResponseSynthesizer):
    net_mocker = NetworkMocker(
        stub_page,
        settings=stub_settings,
        synthesizer=fixed_synthesizer,
        clock=stub_page.clock,
    )
    yield net_mocker
    net_mocker.dispose()
