"""
支付意图领域实体 - 收款请求的生命周期聚合根
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid

from domain.payment_intent.exceptions import InvalidPaymentIntentInputException


class PaymentIntentStatus(str, Enum):
    """支付意图状态枚举"""
    PENDING = "PENDING"          # 等待顾客支付
    SUCCEEDED = "SUCCEEDED"      # 支付成功
    FAILED = "FAILED"            # 支付失败（如卡被拒）
    CANCELLED = "CANCELLED"      # 商户取消
    EXPIRED = "EXPIRED"          # 超时未支付


class PaymentMethod(str, Enum):
    """收款方式"""
    CARD = "CARD"
    QR = "QR"


# 终态：一旦进入，status 与 failure_reason 不再变化
TERMINAL_STATUSES = frozenset({
    PaymentIntentStatus.SUCCEEDED,
    PaymentIntentStatus.FAILED,
    PaymentIntentStatus.CANCELLED,
    PaymentIntentStatus.EXPIRED,
})


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区（SQLite 读回的是 naive 时间）"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def new_intent_id() -> str:
    return str(uuid.uuid4())


@dataclass
class PaymentIntent:
    """
    支付意图聚合根

    业务规则：
    1. 金额以最小货币单位（如便士）的正整数表示，不使用浮点
    2. (scope_id, idempotency_key) 在 idempotency_key 存在时唯一
    3. expires_at 创建时确定，之后不再延长
    4. 状态只能单向流向终态，状态变更只通过存储的条件更新完成
    """

    id: str
    scope_id: str
    amount: int
    currency: str  # ISO-4217
    method: PaymentMethod
    status: PaymentIntentStatus
    expires_at: datetime
    failure_reason: Optional[str] = None
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """初始化后验证"""
        self._validate_amount()
        self._validate_currency()
        self._validate_method()
        self.status = PaymentIntentStatus(self.status)
        self._normalize_timestamps()

    def _validate_method(self) -> None:
        try:
            self.method = PaymentMethod(self.method)
        except ValueError:
            raise InvalidPaymentIntentInputException(
                f"unsupported payment method: {self.method!r}",
                field="method",
            ) from None

    def _validate_amount(self) -> None:
        """业务规则：金额必须是大于0的整数"""
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidPaymentIntentInputException(
                f"amount must be an integer in minor units: {self.amount!r}",
                field="amount",
            )
        if self.amount <= 0:
            raise InvalidPaymentIntentInputException(
                f"amount must be greater than 0: {self.amount}",
                field="amount",
            )

    def _validate_currency(self) -> None:
        """业务规则：货币代码必须是3位字母"""
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise InvalidPaymentIntentInputException(
                f"invalid currency code: {self.currency!r}",
                field="currency",
            )
        self.currency = self.currency.upper()

    def _normalize_timestamps(self) -> None:
        self.expires_at = _ensure_utc(self.expires_at)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def is_final_status(self) -> bool:
        """检查是否为终态"""
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now: datetime) -> bool:
        """到达 expires_at 即视为过期（边界时刻不可再操作）"""
        return self.expires_at <= now
