# -*- coding: utf-8 -*-
"""
network_utils.py
----------------
基于 Playwright 路由的接口 mock 工具（用例层入口）。

主要能力：
1. 注册 / 移除 / 清空 mock 规则，拦截匹配的请求并返回构造好的响应；
2. 按调用预算、HTTP 方法、自定义条件决定是否命中，不命中的请求正常放行；
3. 常见业务场景一行开启（资格校验、理赔、支付、登录、错误注入、慢接口等）；
4. 统计每条规则的命中次数，并支持阻塞等待命中 N 次。

使用方式：
    def test_xxx(page: Page, network_mock: NetworkMocker):
        network_mock.mock_eligibility("M001")
        page.goto("/eligibility")
        network_mock.wait_for_count("eligibility", 1)

一个 NetworkMocker 只服务一个 Page，用例结束时由 fixture 调用 dispose() 卸载全部路由。
"""

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from playwright.sync_api import Page, Request, Route

from framework.core.config_loader import MockSettings, get_mock_settings
from framework.core.logger import get_logger
from framework.mock.models import ClaimStatus, MockRule
from framework.mock.registry import RuleRegistry
from framework.mock.synthesizer import ResponseSynthesizer
from framework.mock.waiter import SynchronizationWaiter
from utils import mock_presets
from utils.mock_presets import PathPattern

logger = get_logger()

REQUEST_LOG_PATTERN = "**/*"


class NetworkMocker:
    """
    单个页面的网络 mock 管理器。

    :param page: 当前用例的 Page 实例
    :param settings: mock 配置，None 时读取 configs 中的 mock 节点
    :param synthesizer: 响应构造器，None 时使用默认实现（可注入固定时钟）
    :param clock: 单调时钟（秒），供 wait_for_count 计算截止时间
    """

    def __init__(
        self,
        page: Page,
        settings: Optional[MockSettings] = None,
        synthesizer: Optional[ResponseSynthesizer] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.page = page
        self.settings = settings or get_mock_settings()
        self._disposed = False
        self._log_handler: Optional[Callable[[Route, Request], None]] = None

        self._registry = RuleRegistry(
            host=page,
            synthesizer=synthesizer,
            replace_existing=self.settings.replace_existing,
        )
        self._waiter = SynchronizationWaiter(
            counter=self._registry.counter,
            sleep=page.wait_for_timeout,
            poll_interval_ms=self.settings.poll_interval_ms,
            clock=clock or time.monotonic,
            is_disposed=lambda: self._disposed,
        )

        # 页面关闭后不再等待，也不再尝试卸载路由
        page.on("close", self._on_page_close)

        if self.settings.log_requests:
            self.enable_request_logging()

    # ------------------------------------------------------------------
    # 规则管理
    # ------------------------------------------------------------------
    def add_rule(self, rule_id: str, rule: MockRule, replace: Optional[bool] = None) -> MockRule:
        """
        注册一条 mock 规则。

        :param rule_id: 规则 id（同一个 NetworkMocker 内唯一）
        :param rule: 规则定义
        :param replace: id 已存在时是否覆盖；None 表示使用配置 mock.replace_existing
        :return: 实际生效的规则
        """
        self._ensure_usable()
        return self._registry.register(rule_id, rule, replace=replace)

    def remove_rule(self, rule_id: str) -> bool:
        """移除规则，id 不存在时不报错，返回 False。"""
        return self._registry.remove(rule_id)

    def clear_all(self) -> None:
        """移除全部规则，之前 mock 的 URL 恢复正常放行。"""
        self._registry.clear()

    def get_rule(self, rule_id: str) -> MockRule:
        """按 id 获取规则，不存在时抛 UnknownRuleError。"""
        return self._registry.get(rule_id)

    @property
    def rule_ids(self) -> List[str]:
        return self._registry.rule_ids

    # ------------------------------------------------------------------
    # 计数与同步
    # ------------------------------------------------------------------
    def get_count(self, rule_id: str) -> int:
        """规则已成功 fulfill 的次数，未知 id 返回 0。"""
        return self._registry.counter.get(rule_id)

    def wait_for_count(
        self,
        rule_id: str,
        expected_count: int,
        timeout_ms: Optional[int] = None,
    ) -> int:
        """
        阻塞等待规则命中 expected_count 次（等待期间页面照常处理请求）。

        :param timeout_ms: 超时时间（毫秒），None 时使用配置 mock.wait_timeout_ms
        :raises MockTimeoutError: 超时，异常上带 rule_id / expected / observed
        :raises WaitAbortedError: 页面已关闭或 NetworkMocker 已释放
        """
        if timeout_ms is None:
            timeout_ms = self.settings.wait_timeout_ms
        return self._waiter.wait_for_count(rule_id, expected_count, timeout_ms)

    def summary(self) -> Dict[str, Any]:
        """当前规则与命中次数的快照，失败用例会把它挂到测试报告里。"""
        counts = self._registry.counter.snapshot()
        rules = []
        for rule_id in self._registry.rule_ids:
            rule = self._registry.get(rule_id)
            rules.append(
                {
                    "id": rule_id,
                    "method": rule.method or "*",
                    "times": rule.times,
                    "count": counts.get(rule_id, 0),
                }
            )
        return {"disposed": self._disposed, "rules": rules}

    # ------------------------------------------------------------------
    # 业务场景预设
    # ------------------------------------------------------------------
    def mock_eligibility(self, member_id: str, is_eligible: bool = True) -> MockRule:
        return self._install(mock_presets.eligibility_rule(member_id, is_eligible))

    def mock_claims(self, claim_id: str, status: ClaimStatus = "approved") -> MockRule:
        return self._install(mock_presets.claims_rule(claim_id, status))

    def mock_payment(self, payment_id: str, success: bool = True) -> MockRule:
        return self._install(mock_presets.payment_rule(payment_id, success))

    def mock_auth(self, success: bool = True, role: str = "member") -> MockRule:
        return self._install(mock_presets.auth_rule(success, role))

    def mock_provider_search(self, providers: Optional[Iterable[Dict[str, Any]]] = None) -> MockRule:
        return self._install(mock_presets.provider_search_rule(providers))

    def mock_plan_info(self, plans: Optional[Iterable[Dict[str, Any]]] = None) -> MockRule:
        return self._install(mock_presets.plan_info_rule(plans))

    def mock_error(
        self,
        path_pattern: PathPattern,
        code: int = 500,
        message: str = "Internal Server Error",
    ) -> MockRule:
        return self._install(mock_presets.error_rule(path_pattern, code, message))

    def mock_slow(self, path_pattern: PathPattern, delay_ms: Optional[int] = None) -> MockRule:
        if delay_ms is None:
            delay_ms = self.settings.slow_delay_ms
        return self._install(mock_presets.slow_rule(path_pattern, delay_ms))

    def mock_protocol_action(
        self,
        endpoint: PathPattern,
        action_name: str,
        raw_body: str,
        header_name: str = "SOAPAction",
    ) -> MockRule:
        return self._install(
            mock_presets.protocol_action_rule(endpoint, action_name, raw_body, header_name)
        )

    def mock_file_upload(self, path: PathPattern, success: bool = True) -> MockRule:
        return self._install(mock_presets.file_upload_rule(path, success))

    def _install(self, rule: MockRule) -> MockRule:
        return self.add_rule(rule.rule_id, rule)

    # ------------------------------------------------------------------
    # 请求日志
    # ------------------------------------------------------------------
    def enable_request_logging(self) -> None:
        """
        记录页面发出的所有请求（方法 + URL，/api/ 请求额外记录请求头和非 GET 请求体），
        记录后 fallback，不影响 mock 规则和真实网络。

        注意：Playwright 先调用最近注册的路由回调。日志回调在 mock 规则之前注册时
        （例如 mock.log_requests 打开），被规则 fulfill 的请求不会经过日志回调，
        只有放行的请求会被记录；想记录全部请求，需在注册完规则后再调用本方法。
        """
        self._ensure_usable()
        if self._log_handler is not None:
            return

        def _log_request(route: Route, request: Request) -> None:
            try:
                logger.info(f"[Network] {request.method} {request.url}")
                if "/api/" in request.url:
                    logger.info(f"[Network] Headers: {request.headers}")
                    if request.method != "GET":
                        try:
                            post_data = request.post_data
                        except UnicodeDecodeError:
                            post_data = "<binary>"
                        if post_data:
                            logger.info(f"[Network] Body: {post_data}")
            except Exception as e:  # noqa: BLE001
                logger.warning(f"[Network] 记录请求失败: {e}")
            try:
                route.fallback()
            except Exception as e:  # noqa: BLE001
                logger.warning(f"[Network] 放行请求失败（页面可能已关闭）: {e}")

        self._log_handler = _log_request
        self.page.route(REQUEST_LOG_PATTERN, _log_request)
        logger.info("[Network] 已开启请求日志")

    def disable_request_logging(self) -> None:
        if self._log_handler is None:
            return
        handler, self._log_handler = self._log_handler, None
        try:
            self.page.unroute(REQUEST_LOG_PATTERN, handler)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"[Network] 关闭请求日志失败（页面可能已关闭）: {e}")
        else:
            logger.info("[Network] 已关闭请求日志")

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------
    def dispose(self) -> None:
        """卸载全部路由并中止进行中的等待。可重复调用。"""
        if self._disposed and not self._registry.rule_ids and self._log_handler is None:
            return
        self._disposed = True
        self.disable_request_logging()
        self._registry.clear()
        logger.info("[Mock] NetworkMocker 已释放")

    def _on_page_close(self, *_args: Any) -> None:
        logger.info("[Mock] 页面已关闭，停止等待 mock 命中")
        self._disposed = True

    def _ensure_usable(self) -> None:
        if self._disposed:
            raise RuntimeError("NetworkMocker 已释放（页面已关闭或用例已结束），不能再注册规则")

    def __enter__(self) -> "NetworkMocker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
