# -*- coding: utf-8 -*-
"""
mock_presets.py
---------------
常见业务场景的 mock 规则工厂。

每个函数都是纯函数：只根据参数组装并返回一条 MockRule，不碰任何全局状态，
所以不同参数调用两次得到的规则可以用不同 id 同时注册，互不干扰。
默认 id 与场景同名，需要同一场景注册多条时传 rule_id 覆盖即可。
"""

import re
from typing import Any, Dict, Iterable, Optional, Pattern, Union

from framework.mock.models import (
    AuthBody,
    ClaimBody,
    ClaimStatus,
    EligibilityBody,
    ErrorBody,
    InterceptedRequest,
    MockRule,
    PaymentBody,
    PlanListBody,
    ProviderSearchBody,
    RawBody,
    ResponseSpec,
    SlowBody,
    UploadBody,
)

PathPattern = Union[str, Pattern[str]]

DEFAULT_PROVIDERS = (
    {
        "providerId": "PRV_001",
        "npi": "1234567890",
        "name": "Dr. John Smith",
        "specialty": "Primary Care",
        "address": {
            "street1": "123 Medical Center Dr",
            "city": "Healthcare City",
            "state": "HC",
            "zipCode": "12345",
        },
        "phone": "555-0001",
        "isInNetwork": True,
        "acceptingNewPatients": True,
        "distance": 2.5,
    },
)

DEFAULT_PLANS = (
    {
        "planId": "PLAN_001",
        "planName": "UHC Basic Plan",
        "planType": "HMO",
        "premiums": {"individual": 250.00, "family": 750.00},
        "deductibles": {"individual": 1000.00, "family": 2000.00},
        "copays": {
            "primaryCare": 25.00,
            "specialist": 50.00,
            "urgentCare": 75.00,
            "emergencyRoom": 200.00,
        },
        "outOfPocketMax": 5000.00,
        "isActive": True,
    },
)

XML_CONTENT_TYPE = "text/xml; charset=utf-8"


def _as_pattern(path: PathPattern) -> Pattern[str]:
    """路径按正则处理（与浏览器端 new RegExp(path) 一致），已编译的原样返回。"""
    if isinstance(path, str):
        if not path:
            raise ValueError("路径不能为空")
        return re.compile(path)
    return path


def _path_text(path: PathPattern) -> str:
    return path if isinstance(path, str) else path.pattern


def eligibility_rule(member_id: str, is_eligible: bool = True, rule_id: str = "eligibility") -> MockRule:
    """会员资格校验：POST /api/eligibility/verify。"""
    return MockRule(
        rule_id=rule_id,
        url=re.compile(r"/api/eligibility/verify"),
        method="POST",
        response=ResponseSpec(body=EligibilityBody(member_id=member_id, is_eligible=is_eligible)),
    )


def claims_rule(claim_id: str, status: ClaimStatus = "approved", rule_id: str = "claims") -> MockRule:
    """理赔提交：POST /api/claims，status 取 approved / denied / pending。"""
    return MockRule(
        rule_id=rule_id,
        url=re.compile(r"/api/claims"),
        method="POST",
        response=ResponseSpec(body=ClaimBody(claim_id=claim_id, status=status)),
    )


def payment_rule(payment_id: str, success: bool = True, rule_id: str = "payment") -> MockRule:
    """支付：POST /api/payments，失败时返回 400 + PAYMENT_FAILED。"""
    return MockRule(
        rule_id=rule_id,
        url=re.compile(r"/api/payments"),
        method="POST",
        response=ResponseSpec(
            status=200 if success else 400,
            body=PaymentBody(payment_id=payment_id, success=success),
        ),
    )


def auth_rule(success: bool = True, role: str = "member", rule_id: str = "auth") -> MockRule:
    """登录：POST /api/auth/login，失败时返回 401 + INVALID_CREDENTIALS。"""
    return MockRule(
        rule_id=rule_id,
        url=re.compile(r"/api/auth/login"),
        method="POST",
        response=ResponseSpec(
            status=200 if success else 401,
            body=AuthBody(success=success, role=role),
        ),
    )


def provider_search_rule(
    providers: Optional[Iterable[Dict[str, Any]]] = None,
    rule_id: str = "provider-search",
) -> MockRule:
    """医生检索：GET /api/providers/search，未传 providers 时使用默认列表。"""
    provider_list = tuple(providers or ()) or DEFAULT_PROVIDERS
    return MockRule(
        rule_id=rule_id,
        url=re.compile(r"/api/providers/search"),
        method="GET",
        response=ResponseSpec(body=ProviderSearchBody(providers=provider_list)),
    )


def plan_info_rule(
    plans: Optional[Iterable[Dict[str, Any]]] = None,
    rule_id: str = "plan-info",
) -> MockRule:
    """保险计划列表：GET /api/plans，未传 plans 时使用默认列表。"""
    plan_list = tuple(plans or ()) or DEFAULT_PLANS
    return MockRule(
        rule_id=rule_id,
        url=re.compile(r"/api/plans"),
        method="GET",
        response=ResponseSpec(body=PlanListBody(plans=plan_list)),
    )


def error_rule(
    path_pattern: PathPattern,
    code: int = 500,
    message: str = "Internal Server Error",
    rule_id: Optional[str] = None,
) -> MockRule:
    """错误注入：匹配 path_pattern 的任意方法请求都返回 code + 错误信息。"""
    return MockRule(
        rule_id=rule_id or f"error-{_path_text(path_pattern)}",
        url=_as_pattern(path_pattern),
        response=ResponseSpec(status=code, body=ErrorBody(code=code, message=message)),
    )


def slow_rule(path_pattern: PathPattern, delay_ms: int, rule_id: Optional[str] = None) -> MockRule:
    """慢接口：匹配 path_pattern 的请求延迟 delay_ms 毫秒后返回成功。"""
    return MockRule(
        rule_id=rule_id or f"slow-{_path_text(path_pattern)}",
        url=_as_pattern(path_pattern),
        response=ResponseSpec(body=SlowBody(), delay_ms=delay_ms),
    )


def protocol_action_rule(
    endpoint: PathPattern,
    action_name: str,
    raw_body: str,
    header_name: str = "SOAPAction",
    rule_id: Optional[str] = None,
) -> MockRule:
    """
    按请求头分发的协议动作（典型是多个 SOAP 操作共用一个 endpoint）。

    只有 POST 且 header_name 的值等于 action_name 的请求才会命中，
    其他值交给同一 endpoint 上的其他规则或真实网络。
    """
    if not action_name:
        raise ValueError("action_name 不能为空")

    def _matches_action(request: InterceptedRequest) -> bool:
        return request.header(header_name) == action_name

    return MockRule(
        rule_id=rule_id or f"soap-{action_name}",
        url=_as_pattern(endpoint),
        method="POST",
        predicate=_matches_action,
        response=ResponseSpec(
            headers={"Content-Type": XML_CONTENT_TYPE},
            body=RawBody(raw_body),
        ),
    )


def file_upload_rule(path: PathPattern, success: bool = True, rule_id: str = "file-upload") -> MockRule:
    """文件上传：POST path，失败时返回 400 + UPLOAD_FAILED。"""
    return MockRule(
        rule_id=rule_id,
        url=_as_pattern(path),
        method="POST",
        response=ResponseSpec(
            status=200 if success else 400,
            body=UploadBody(success=success),
        ),
    )
