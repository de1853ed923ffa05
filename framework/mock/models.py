# -*- coding: utf-8 -*-
"""
models.py
---------
mock 引擎的数据模型：规则、响应描述、被拦截请求的只读快照，以及按业务场景
区分的响应体（tagged union）。

响应体说明：
- 每种业务场景一个 dataclass，只保存“注册时就确定”的参数；
- 时间戳、requestId 等随时间变化的字段不在这里，而是由 ResponseSynthesizer
  在每次命中时现算，所以同一条规则多次命中时只有这些字段不同；
- RawBody 用于还没有建模的临时 mock。
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Pattern, Tuple, Union

from playwright.sync_api import Request

ClaimStatus = Literal["approved", "denied", "pending"]
CLAIM_STATUSES = ("approved", "denied", "pending")


# ========== 响应体（tagged union） ==========


@dataclass(frozen=True)
class EligibilityBody:
    member_id: str
    is_eligible: bool = True


@dataclass(frozen=True)
class ClaimBody:
    claim_id: str
    status: ClaimStatus = "approved"

    def __post_init__(self) -> None:
        if self.status not in CLAIM_STATUSES:
            raise ValueError(f"不支持的理赔状态: {self.status}，可选值: {CLAIM_STATUSES}")


@dataclass(frozen=True)
class PaymentBody:
    payment_id: str
    success: bool = True


@dataclass(frozen=True)
class AuthBody:
    success: bool = True
    role: str = "member"


@dataclass(frozen=True)
class ProviderSearchBody:
    providers: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class PlanListBody:
    plans: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class ErrorBody:
    code: int = 500
    message: str = "Internal Server Error"


@dataclass(frozen=True)
class SlowBody:
    message: str = "Slow response"


@dataclass(frozen=True)
class UploadBody:
    success: bool = True
    file_name: str = "test-document.pdf"
    file_size: int = 1024


@dataclass(frozen=True)
class RawBody:
    """原样返回的响应体：字符串原样输出，dict / list 序列化为 JSON。"""

    content: Union[str, Dict[str, Any], list, None] = None


ResponseBody = Union[
    EligibilityBody,
    ClaimBody,
    PaymentBody,
    AuthBody,
    ProviderSearchBody,
    PlanListBody,
    ErrorBody,
    SlowBody,
    UploadBody,
    RawBody,
]


# ========== 响应描述 ==========


@dataclass(frozen=True)
class ResponseSpec:
    """
    声明式的响应描述。

    :param status: HTTP 状态码，默认 200
    :param headers: 响应头；未提供 Content-Type 时由 ResponseSynthesizer 推断
    :param body: 响应体，可以是业务响应体，也可以直接给 str / dict / list
    :param delay_ms: 命中后、返回前的人为延迟（毫秒）
    """

    status: int = 200
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Union[ResponseBody, str, Dict[str, Any], list, None] = None
    delay_ms: Optional[int] = None

    def __post_init__(self) -> None:
        if not 100 <= self.status <= 599:
            raise ValueError(f"非法的 HTTP 状态码: {self.status}")
        if self.delay_ms is not None and self.delay_ms < 0:
            raise ValueError(f"delay_ms 不能为负数，当前值: {self.delay_ms}")
        # 冻结一份 headers，避免调用方事后修改影响已注册规则
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))


# ========== 被拦截请求的只读快照 ==========


@dataclass(frozen=True)
class InterceptedRequest:
    """
    被拦截请求的只读快照，规则的 predicate 拿到的就是它。

    headers 的 key 统一为小写（与 Playwright 一致），推荐通过 header() 读取。
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    def __post_init__(self) -> None:
        normalized = {key.lower(): value for key, value in self.headers.items()}
        object.__setattr__(self, "headers", MappingProxyType(normalized))
        object.__setattr__(self, "method", self.method.upper())

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """大小写不敏感地读取请求头。"""
        return self.headers.get(name.lower(), default)

    @classmethod
    def from_playwright(cls, request: Request) -> "InterceptedRequest":
        """
        从 Playwright Request 构建快照。

        post_data 对二进制请求体会解码失败，这种情况下 body 记为 None，
        不影响按 URL / 方法 / 请求头匹配。
        """
        try:
            body = request.post_data
        except UnicodeDecodeError:
            body = None
        return cls(
            method=request.method,
            url=request.url,
            headers=dict(request.headers),
            body=body,
        )


# ========== 规则 ==========

UrlMatcher = Union[str, Pattern[str]]
RequestPredicate = Callable[[InterceptedRequest], bool]


@dataclass(frozen=True)
class MockRule:
    """
    一条 mock 规则。

    :param url: 交给 page.route 的 URL 匹配条件（精确字符串 / glob / 正则）
    :param response: 命中后返回的响应描述
    :param rule_id: 规则 id，注册时会被 register(rule_id, ...) 覆盖
    :param method: 只拦截指定 HTTP 方法，None 表示不限
    :param predicate: 额外的请求判断条件，返回 False 时放行
    :param times: 调用预算，命中次数达到后规则进入“耗尽”状态，之后一律放行
    """

    url: UrlMatcher
    response: ResponseSpec = field(default_factory=ResponseSpec)
    rule_id: str = ""
    method: Optional[str] = None
    predicate: Optional[RequestPredicate] = field(default=None, compare=False)
    times: Optional[int] = None

    def __post_init__(self) -> None:
        pattern_text = self.url if isinstance(self.url, str) else getattr(self.url, "pattern", "")
        if not pattern_text:
            raise ValueError("mock 规则的 url 不能为空")
        if self.times is not None and self.times <= 0:
            raise ValueError(f"times 必须大于 0，当前值: {self.times}")
        if self.method is not None:
            object.__setattr__(self, "method", self.method.upper())

    def with_id(self, rule_id: str) -> "MockRule":
        """返回带指定 id 的新副本；每次注册都持有自己的规则对象。"""
        return replace(self, rule_id=rule_id)
