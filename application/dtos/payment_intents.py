"""
Payment intent DTOs (Pydantic v2) used at application boundaries.

Bounds that belong to the caller-facing validation layer (expiry window,
failure reason length, list limit) live here; the domain only rejects
non-positive amounts.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from application.dto import DTOBase
from core.config import settings
from domain.payment_intent.entity import PaymentIntentStatus, PaymentMethod


class CreatePaymentIntentDTO(DTOBase):
    # minor units (e.g. 1250 = £12.50); strict so floats/strings are rejected
    amount: int = Field(..., gt=0, strict=True, description="金额（最小货币单位）")
    currency: Optional[str] = Field(default=None, description="ISO-4217 货币代码，缺省使用配置")
    method: Optional[PaymentMethod] = Field(default=None, description="收款方式，缺省 QR")
    expires_in_seconds: Optional[int] = Field(
        default=None,
        gt=0,
        le=settings.payment_intent.max_expiry_seconds,
        description="有效期（秒），缺省 300",
    )

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        u = v.upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class FailPaymentIntentDTO(DTOBase):
    reason: Optional[str] = Field(default=None, max_length=100)


class PaymentIntentDTO(DTOBase):
    """对外展示的支付意图"""
    id: str
    scope_id: str
    amount: int
    currency: str
    method: PaymentMethod
    status: PaymentIntentStatus
    failure_reason: Optional[str] = None
    expires_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # 收银端以二维码展示的顾客支付链接
    customer_url: str


class PaymentIntentListDTO(DTOBase):
    items: list[PaymentIntentDTO]
