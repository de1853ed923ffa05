# -*- coding: utf-8 -*-
"""
exceptions.py
-------------
mock 引擎的异常体系。

传播规则：
- 拦截回调内部（匹配 / 谓词 / 构造响应）抛出的异常一律在 RequestDispatcher
  边界被捕获，记录日志后按放行处理，不会冒泡到 Playwright 的路由管线；
- wait_for_count 在测试代码的调用栈上执行，超时 / 中止异常正常抛给用例。
"""


class MockEngineError(Exception):
    """mock 引擎所有自定义异常的基类。"""


class MockTimeoutError(MockEngineError, TimeoutError):
    """
    wait_for_count 超时。

    :param rule_id: 等待的规则 id
    :param expected: 期望的命中次数
    :param observed: 超时时刻实际观察到的命中次数
    """

    def __init__(self, rule_id: str, expected: int, observed: int):
        self.rule_id = rule_id
        self.expected = expected
        self.observed = observed
        super().__init__(
            f"等待 mock 规则命中超时: rule_id={rule_id}, 期望={expected}, 实际={observed}"
        )


class WaitAbortedError(MockEngineError):
    """所属页面关闭或 NetworkMocker 已释放，等待被中止。"""

    def __init__(self, rule_id: str, expected: int, observed: int):
        self.rule_id = rule_id
        self.expected = expected
        self.observed = observed
        super().__init__(
            f"等待 mock 规则命中被中止（页面已关闭或 mock 已释放）: "
            f"rule_id={rule_id}, 期望={expected}, 实际={observed}"
        )


class FulfillmentError(MockEngineError):
    """构造 mock 响应失败（例如 body 无法序列化），由调度器降级为放行。"""


class UnknownRuleError(MockEngineError, KeyError):
    """按 id 查询了一个不存在的规则。"""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(rule_id)

    def __str__(self) -> str:
        return f"mock 规则不存在: rule_id={self.rule_id}"


class RegistrationConflictError(MockEngineError):
    """严格模式下重复注册同一个规则 id。"""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(
            f"mock 规则 id 已存在: {rule_id}，如需覆盖请传 replace=True "
            f"或在配置中设置 mock.replace_existing: true"
        )
