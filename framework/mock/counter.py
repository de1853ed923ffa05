# -*- coding: utf-8 -*-
"""
counter.py
----------
CallCounter：按规则 id 记录成功 fulfill 的次数。

Playwright sync API 的路由回调都跑在同一个事件循环上，本身不会并发修改；
这里仍然加一把锁，保证从其他线程读写（例如测试代码里起的辅助线程）时不丢计数。
"""

import threading
from typing import Dict


class CallCounter:
    """规则命中计数器。不存在的 id 一律视为 0。"""

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, rule_id: str) -> int:
        with self._lock:
            return self._counts.get(rule_id, 0)

    def increment(self, rule_id: str) -> int:
        """计数 +1，返回新值。"""
        with self._lock:
            value = self._counts.get(rule_id, 0) + 1
            self._counts[rule_id] = value
            return value

    def decrement(self, rule_id: str) -> int:
        """
        撤销一次预占的计数（fulfill 失败时使用），最低减到 0。
        id 已被移除时不做任何事。
        """
        with self._lock:
            if rule_id not in self._counts:
                return 0
            value = max(self._counts[rule_id] - 1, 0)
            self._counts[rule_id] = value
            return value

    def reset(self, rule_id: str) -> None:
        """把计数置 0（不存在则创建）。"""
        with self._lock:
            self._counts[rule_id] = 0

    def discard(self, rule_id: str) -> None:
        with self._lock:
            self._counts.pop(rule_id, None)

    def clear(self) -> None:
        with self._lock:
            self._counts.clear()

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def __contains__(self, rule_id: object) -> bool:
        with self._lock:
            return rule_id in self._counts
