# -*- coding: utf-8 -*-
"""
synthesizer.py
--------------
ResponseSynthesizer：把声明式的 ResponseSpec 构造成可以直接交给
route.fulfill() 的响应（状态码 + 响应头 + 文本 body）。

约定：
1. 结构化 body 序列化成 JSON 文本，字符串原样输出，None 输出空串；
2. 状态码默认 200；
3. 只有调用方没给 Content-Type 时才推断（JSON -> application/json，文本 -> text/plain）；
4. 业务响应体统一包一层 {success, data | error, timestamp, requestId}，
   其中随时间变化的字段在 build() 时现算，时钟可注入，方便用例固定时间。
"""

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from framework.core.exceptions import FulfillmentError
from framework.mock.models import (
    AuthBody,
    ClaimBody,
    EligibilityBody,
    ErrorBody,
    PaymentBody,
    PlanListBody,
    ProviderSearchBody,
    RawBody,
    ResponseSpec,
    SlowBody,
    UploadBody,
)

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SynthesizedResponse:
    """构造完成、可直接 fulfill 的响应。"""

    status: int
    headers: Dict[str, str]
    body: str

    def as_fulfill_kwargs(self) -> Dict[str, Any]:
        return {"status": self.status, "headers": dict(self.headers), "body": self.body}


class ResponseSynthesizer:
    """
    响应构造器。

    :param clock: 返回当前时间（带时区）的函数，默认 UTC 当前时间
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utc_now

    def build(self, spec: ResponseSpec) -> SynthesizedResponse:
        """
        根据 ResponseSpec 构造响应。

        :raises FulfillmentError: body 类型不支持或无法序列化
        """
        payload = self.render_payload(spec.body)

        if isinstance(payload, str):
            body_text = payload
            inferred_type = TEXT_CONTENT_TYPE
        else:
            try:
                body_text = json.dumps(payload, ensure_ascii=False)
            except (TypeError, ValueError) as e:
                raise FulfillmentError(f"响应 body 无法序列化为 JSON: {e}") from e
            inferred_type = JSON_CONTENT_TYPE

        headers = dict(spec.headers)
        if not _has_header(headers, "content-type"):
            headers["Content-Type"] = inferred_type

        return SynthesizedResponse(status=spec.status, headers=headers, body=body_text)

    def render_payload(self, body: Any) -> Any:
        """
        把响应体渲染成 str 或可 JSON 序列化的结构。

        每种业务响应体都必须在这里有对应分支，新增类型时漏加会直接抛 FulfillmentError。
        """
        if body is None:
            return ""
        if isinstance(body, (str, dict, list)):
            return body
        if isinstance(body, RawBody):
            return self.render_payload(body.content)

        now = self._clock()
        if isinstance(body, EligibilityBody):
            return self._envelope(now, data=_eligibility_data(body))
        if isinstance(body, ClaimBody):
            return self._envelope(now, data=_claim_data(body, now))
        if isinstance(body, PaymentBody):
            if body.success:
                return self._envelope(now, data=_payment_data(body, now))
            return self._envelope(
                now,
                error={
                    "code": "PAYMENT_FAILED",
                    "message": "Payment processing failed",
                    "details": {"reason": "Insufficient funds"},
                },
            )
        if isinstance(body, AuthBody):
            if body.success:
                return self._envelope(now, data=_auth_data(body))
            return self._envelope(
                now,
                error={"code": "INVALID_CREDENTIALS", "message": "Invalid username or password"},
            )
        if isinstance(body, ProviderSearchBody):
            providers = list(body.providers)
            return self._envelope(
                now,
                data={
                    "providers": providers,
                    "totalCount": len(providers),
                    "page": 1,
                    "pageSize": 10,
                },
            )
        if isinstance(body, PlanListBody):
            plans = list(body.plans)
            return self._envelope(now, data={"plans": plans, "totalCount": len(plans)})
        if isinstance(body, ErrorBody):
            return self._envelope(now, error={"code": str(body.code), "message": body.message})
        if isinstance(body, SlowBody):
            return self._envelope(now, data={"message": body.message})
        if isinstance(body, UploadBody):
            # 上传接口的返回不带 timestamp / requestId
            if body.success:
                return {
                    "success": True,
                    "data": {
                        "fileId": f"file_{_epoch_ms(now)}",
                        "fileName": body.file_name,
                        "fileSize": body.file_size,
                        "uploadDate": _iso(now),
                    },
                }
            return {
                "success": False,
                "error": {"code": "UPLOAD_FAILED", "message": "File upload failed"},
            }

        raise FulfillmentError(f"不支持的响应 body 类型: {type(body).__name__}")

    @staticmethod
    def _envelope(
        now: datetime,
        data: Optional[Dict[str, Any]] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"success": error is None}
        if error is None:
            envelope["data"] = data
        else:
            envelope["error"] = error
        envelope["timestamp"] = _iso(now)
        envelope["requestId"] = f"req_{_epoch_ms(now)}"
        return envelope


def _has_header(headers: Mapping[str, str], name: str) -> bool:
    return any(key.lower() == name for key in headers)


def _iso(now: datetime) -> str:
    """ISO-8601，毫秒精度，UTC 用 Z 结尾（与浏览器端 Date.toISOString 一致）。"""
    text = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def _eligibility_data(body: EligibilityBody) -> Dict[str, Any]:
    benefits = []
    if body.is_eligible:
        benefits.append(
            {
                "serviceType": "Medical",
                "coverage": "80%",
                "deductible": 1000,
                "copay": 25,
                "coinsurance": 20,
                "outOfPocketMax": 5000,
                "remainingDeductible": 500,
                "remainingOutOfPocket": 2500,
            }
        )
    return {
        "memberId": body.member_id,
        "isEligible": body.is_eligible,
        "effectiveDate": "2024-01-01",
        "terminationDate": "2024-12-31" if body.is_eligible else "2024-01-01",
        "benefits": benefits,
        "limitations": [],
        "exclusions": [],
    }


def _claim_data(body: ClaimBody, now: datetime) -> Dict[str, Any]:
    approved = body.status == "approved"
    return {
        "claimId": body.claim_id,
        "status": body.status,
        "submissionDate": _iso(now),
        "processedDate": _iso(now) if body.status != "pending" else None,
        "amount": {
            "billed": 150.00,
            "allowed": 120.00,
            "paid": 95.00 if approved else 0.00,
            "memberResponsibility": 25.00 if approved else 0.00,
        },
        "reasonCodes": ["INVALID_DIAGNOSIS"] if body.status == "denied" else [],
    }


def _payment_data(body: PaymentBody, now: datetime) -> Dict[str, Any]:
    return {
        "paymentId": body.payment_id,
        "status": "completed",
        "amount": 250.00,
        "paymentMethod": "credit_card",
        "transactionId": f"txn_{_epoch_ms(now)}",
        "processedDate": _iso(now),
    }


def _auth_data(body: AuthBody) -> Dict[str, Any]:
    return {
        "accessToken": "mock_access_token",
        "refreshToken": "mock_refresh_token",
        "tokenType": "Bearer",
        "expiresIn": 3600,
        "user": {
            "id": "user_123",
            "username": f"test.{body.role}@uhc.com",
            "role": body.role,
            "firstName": "Test",
            "lastName": "User",
            "permissions": ["view_dashboard"],
        },
    }
