# -*- coding: utf-8 -*-
"""
waiter.py
---------
SynchronizationWaiter：让测试代码阻塞等待某条规则被命中 N 次。

注意：
- sync API 下不能用 time.sleep 等待，否则事件循环停住，路由回调根本不会执行；
  这里的 sleep 用的是 page.wait_for_timeout，等待期间拦截照常进行；
- 每次最多睡 poll_interval_ms，且不会睡过截止时间；
- 页面关闭或 NetworkMocker 释放后立刻以 WaitAbortedError 结束等待。
"""

import time
from typing import Callable, Optional

from framework.core.exceptions import MockTimeoutError, WaitAbortedError
from framework.core.logger import get_logger
from framework.mock.counter import CallCounter

logger = get_logger()


class SynchronizationWaiter:
    """
    :param counter: 要观察的命中计数器
    :param sleep: 非阻塞等待函数（毫秒）
    :param poll_interval_ms: 轮询间隔，默认 100ms
    :param clock: 单调时钟（秒），默认 time.monotonic
    :param is_disposed: 返回 True 表示所属场景已结束，需要中止等待
    """

    def __init__(
        self,
        counter: CallCounter,
        sleep: Callable[[float], None],
        poll_interval_ms: int = 100,
        clock: Optional[Callable[[], float]] = None,
        is_disposed: Optional[Callable[[], bool]] = None,
    ):
        if poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms 必须大于 0，当前值: {poll_interval_ms}")
        self._counter = counter
        self._sleep = sleep
        self._poll_interval_ms = poll_interval_ms
        self._clock = clock or time.monotonic
        self._is_disposed = is_disposed or (lambda: False)

    def wait_for_count(self, rule_id: str, expected_count: int, timeout_ms: int) -> int:
        """
        等待规则命中次数达到 expected_count。

        :return: 满足条件时观察到的命中次数
        :raises MockTimeoutError: 截止时间内没等到，observed 为超时时刻的真实计数
        :raises WaitAbortedError: 页面关闭或 mock 已释放
        """
        if timeout_ms < 0:
            raise ValueError(f"timeout_ms 不能为负数，当前值: {timeout_ms}")

        deadline = self._clock() + timeout_ms / 1000
        logger.info(
            f"[Mock 等待] 等待规则 {rule_id} 命中 {expected_count} 次，timeout={timeout_ms}ms"
        )

        while True:
            observed = self._counter.get(rule_id)
            if self._is_disposed():
                raise WaitAbortedError(rule_id, expected_count, observed)
            if observed >= expected_count:
                logger.info(f"[Mock 等待] 规则 {rule_id} 已命中 {observed} 次")
                return observed

            remaining_ms = (deadline - self._clock()) * 1000
            if remaining_ms <= 0:
                logger.error(
                    f"[Mock 等待] 超时: rule_id={rule_id}, 期望={expected_count}, 实际={observed}"
                )
                raise MockTimeoutError(rule_id, expected_count, observed)

            try:
                self._sleep(min(self._poll_interval_ms, remaining_ms))
            except Exception as e:
                if self._is_disposed():
                    raise WaitAbortedError(
                        rule_id, expected_count, self._counter.get(rule_id)
                    ) from e
                raise
