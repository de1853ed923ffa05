# -*- coding: utf-8 -*-
"""
dispatcher.py
-------------
RequestDispatcher：每个被拦截请求都会进入这里的路由回调。

处理顺序（对命中某条规则 URL 的请求）：
1. 规则设置了 times 且已命中 times 次 -> 放行，不计数；
2. 规则设置了 method 且请求方法不一致 -> 放行；
3. 规则设置了 predicate 且返回 False -> 放行；
4. 计数 +1 -> （可选）延迟 -> 构造响应 -> route.fulfill()；
   构造或 fulfill 失败时回退计数并放行。

放行统一使用 route.fallback()：请求会继续交给更早注册的、同样匹配的路由，
都不处理时才走真实网络。回调内部的任何异常都只记日志并按放行处理，
绝不抛回 Playwright 的路由管线。
"""

from typing import Callable

from playwright.sync_api import Request, Route

from framework.core.logger import get_logger
from framework.mock.counter import CallCounter
from framework.mock.models import InterceptedRequest, MockRule
from framework.mock.synthesizer import ResponseSynthesizer

logger = get_logger()

RouteHandler = Callable[[Route, Request], None]


class RequestDispatcher:
    """
    路由回调的实现。

    :param counter: 规则命中计数器（调度器是它唯一的写入方）
    :param synthesizer: 响应构造器
    :param sleep: 非阻塞延迟函数（毫秒），一般是 page.wait_for_timeout，
                  等待期间 Playwright 仍会继续处理其他请求
    :param is_active: 判断规则对象是否仍属于当前这次注册
    """

    def __init__(
        self,
        counter: CallCounter,
        synthesizer: ResponseSynthesizer,
        sleep: Callable[[float], None],
        is_active: Callable[[MockRule], bool],
    ):
        self._counter = counter
        self._synthesizer = synthesizer
        self._sleep = sleep
        self._is_active = is_active

    def create_handler(self, rule: MockRule) -> RouteHandler:
        """为规则生成一个交给 page.route 的回调。"""

        def _handler(route: Route, request: Request) -> None:
            self.dispatch(rule, route, request)

        return _handler

    def dispatch(self, rule: MockRule, route: Route, request: Request) -> bool:
        """
        处理一个被拦截的请求。

        :return: True 表示已用 mock 响应 fulfill，False 表示已放行
        """
        try:
            intercepted = InterceptedRequest.from_playwright(request)
            if not self._should_fulfill(rule, intercepted):
                self._pass_through(route)
                return False
        except Exception as e:  # noqa: BLE001
            logger.exception(f"[Mock] 规则 {rule.rule_id} 处理请求时出错，按放行处理: {e}")
            self._pass_through(route)
            return False

        # 先预占计数再延迟，延迟期间并发进来的请求也能正确看到预算
        self._counter.increment(rule.rule_id)
        try:
            if rule.response.delay_ms:
                logger.info(f"[Mock] 规则 {rule.rule_id} 延迟 {rule.response.delay_ms}ms 后返回")
                self._sleep(rule.response.delay_ms)

            if not self._is_active(rule):
                # 延迟期间规则被移除或重新注册，计数已随之清理，这里只需放行
                logger.warning(f"[Mock] 规则 {rule.rule_id} 在延迟期间已失效，按放行处理")
                self._pass_through(route)
                return False

            # 时间相关字段按真正返回的时刻生成
            response = self._synthesizer.build(rule.response)
            route.fulfill(**response.as_fulfill_kwargs())
        except Exception as e:  # noqa: BLE001
            if self._is_active(rule):
                self._counter.decrement(rule.rule_id)
            logger.error(f"[Mock] 规则 {rule.rule_id} 构造或 fulfill 响应失败，按放行处理: {e}")
            self._pass_through(route)
            return False

        logger.info(
            f"[Mock] 已拦截 {intercepted.method} {intercepted.url} -> "
            f"规则 {rule.rule_id}, status={response.status}"
        )
        return True

    def _should_fulfill(self, rule: MockRule, request: InterceptedRequest) -> bool:
        if rule.times is not None and self._counter.get(rule.rule_id) >= rule.times:
            logger.debug(f"[Mock] 规则 {rule.rule_id} 调用预算已用完({rule.times})，放行")
            return False
        if rule.method and request.method != rule.method:
            return False
        if rule.predicate is not None and not rule.predicate(request):
            logger.debug(f"[Mock] 规则 {rule.rule_id} 条件不满足，放行 {request.url}")
            return False
        return True

    @staticmethod
    def _pass_through(route: Route) -> None:
        try:
            route.fallback()
        except Exception as e:  # noqa: BLE001
            # 页面已关闭等情况下放行也会失败，此时请求本身已经没有去处
            logger.warning(f"[Mock] 放行请求失败: {e}")
