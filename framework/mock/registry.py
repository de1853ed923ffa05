# -*- coding: utf-8 -*-
"""
registry.py
-----------
RuleRegistry：持有当前生效的 mock 规则，以及为它们安装在页面上的路由回调。

规则：
1. 每条规则对应一个独立的 page.route 回调，移除时只 unroute 自己的回调，
   同一 URL 模式下的其他规则不受影响；
2. 重复注册同一个 id：默认静默替换（旧回调卸载、计数清零），
   严格模式下抛 RegistrationConflictError；
3. 多条规则的 URL 模式重叠时，按“最近注册的优先”处理：Playwright 按注册的
   逆序调用路由回调，规则不处理时 fallback 给下一条。
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from playwright.sync_api import Page

from framework.core.exceptions import RegistrationConflictError, UnknownRuleError
from framework.core.logger import get_logger
from framework.mock.counter import CallCounter
from framework.mock.dispatcher import RequestDispatcher, RouteHandler
from framework.mock.models import MockRule, UrlMatcher
from framework.mock.synthesizer import ResponseSynthesizer

logger = get_logger()


class InterceptionHost(Protocol):
    """规则挂载的宿主，Playwright 的 Page 天然满足这个协议。"""

    def route(self, url: UrlMatcher, handler: Callable) -> None: ...

    def unroute(self, url: UrlMatcher, handler: Optional[Callable] = None) -> None: ...

    def wait_for_timeout(self, timeout: float) -> None: ...


@dataclass
class _Entry:
    rule: MockRule
    handler: RouteHandler


class RuleRegistry:
    """
    规则注册表。

    :param host: 安装路由回调的宿主（一般是 Page）
    :param counter: 命中计数器，None 时自建
    :param synthesizer: 响应构造器，None 时自建
    :param replace_existing: 重复注册同一 id 时的默认策略
    """

    def __init__(
        self,
        host: "InterceptionHost | Page",
        counter: Optional[CallCounter] = None,
        synthesizer: Optional[ResponseSynthesizer] = None,
        replace_existing: bool = True,
    ):
        self._host = host
        self._counter = counter or CallCounter()
        self._entries: Dict[str, _Entry] = {}
        self._replace_existing = replace_existing
        self._dispatcher = RequestDispatcher(
            counter=self._counter,
            synthesizer=synthesizer or ResponseSynthesizer(),
            sleep=host.wait_for_timeout,
            is_active=self.is_active,
        )

    @property
    def counter(self) -> CallCounter:
        return self._counter

    @property
    def rule_ids(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, rule_id: str, rule: MockRule, replace: Optional[bool] = None) -> MockRule:
        """
        注册（或替换）一条规则，并在宿主上安装路由回调。

        :param rule_id: 规则 id
        :param rule: 规则模板，注册的是它带 rule_id 的副本
        :param replace: 是否允许覆盖已有 id；None 表示使用注册表默认策略
        :return: 实际生效的规则对象
        """
        if not rule_id:
            raise ValueError("mock 规则 id 不能为空")

        allow_replace = self._replace_existing if replace is None else replace
        if rule_id in self._entries:
            if not allow_replace:
                raise RegistrationConflictError(rule_id)
            logger.warning(f"[Mock] 规则 id 已存在，覆盖旧规则: {rule_id}")
            self._uninstall(self._entries.pop(rule_id))

        rule = rule.with_id(rule_id)
        handler = self._dispatcher.create_handler(rule)
        # 先建好计数再挂回调，回调一旦安装就可能立刻被调用
        self._counter.reset(rule_id)
        self._entries[rule_id] = _Entry(rule=rule, handler=handler)
        try:
            self._host.route(rule.url, handler)
        except Exception:
            self._entries.pop(rule_id, None)
            self._counter.discard(rule_id)
            raise

        logger.info(
            f"[Mock] 注册规则: id={rule_id}, url={_describe_url(rule.url)}, "
            f"method={rule.method or '*'}, times={rule.times}"
        )
        return rule

    def remove(self, rule_id: str) -> bool:
        """
        移除规则并卸载它的路由回调；id 不存在时什么都不做。

        :return: 是否真的移除了规则
        """
        entry = self._entries.pop(rule_id, None)
        if entry is None:
            logger.debug(f"[Mock] 移除规则时未找到 id，忽略: {rule_id}")
            return False
        self._uninstall(entry)
        logger.info(f"[Mock] 已移除规则: {rule_id}")
        return True

    def clear(self) -> None:
        """移除所有规则。"""
        for rule_id in list(self._entries):
            self.remove(rule_id)
        self._counter.clear()
        logger.info("[Mock] 已清空所有规则")

    def get(self, rule_id: str) -> MockRule:
        entry = self._entries.get(rule_id)
        if entry is None:
            raise UnknownRuleError(rule_id)
        return entry.rule

    def is_active(self, rule: MockRule) -> bool:
        """
        规则对象是否属于该 id 当前这次注册（被移除 / 替换后返回 False）。

        register() 每次都会生成新的规则副本，所以同一个对象重复注册也算新的一次。
        """
        entry = self._entries.get(rule.rule_id)
        return entry is not None and entry.rule is rule

    def _uninstall(self, entry: _Entry) -> None:
        self._counter.discard(entry.rule.rule_id)
        try:
            self._host.unroute(entry.rule.url, entry.handler)
        except Exception as e:  # noqa: BLE001
            # 页面已经关闭时 unroute 会失败，规则本身照样从注册表里移除
            logger.warning(f"[Mock] 卸载规则 {entry.rule.rule_id} 的路由回调失败: {e}")


def _describe_url(url: UrlMatcher) -> str:
    return url if isinstance(url, str) else f"re:{url.pattern}"
