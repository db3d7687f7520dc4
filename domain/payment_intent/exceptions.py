"""
支付意图业务异常

守卫转换失败时调用方需要区分 "已结束" / "已过期" / "不存在"，三者驱动不同的界面提示。
"""
from __future__ import annotations

from typing import Optional

from domain.common.exceptions import BusinessException, DomainValidationException
from shared.codes.payment_codes import PaymentCode


class InvalidPaymentIntentInputException(DomainValidationException):
    """创建参数非法（调用方错误，原样重试无意义）"""

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.error_type = "InvalidPaymentIntentInput"


class PaymentIntentNotFoundException(BusinessException):
    def __init__(self, intent_id: str):
        super().__init__(
            code=PaymentCode.INTENT_NOT_FOUND,
            message="Payment not found",
            error_type="PaymentIntentNotFound",
            details={"id": intent_id},
        )
        self.intent_id = intent_id


class PaymentIntentAlreadyFinalException(BusinessException):
    """终态冲突，携带当前终态供调用方展示"""

    def __init__(self, intent_id: str, status):
        status_value = getattr(status, "value", status)
        super().__init__(
            code=PaymentCode.INTENT_ALREADY_FINAL,
            message=f"Payment is {status_value}",
            error_type="PaymentIntentAlreadyFinal",
            details={"id": intent_id, "status": status_value},
        )
        self.intent_id = intent_id
        self.status = status


class PaymentIntentExpiredException(BusinessException):
    def __init__(self, intent_id: str):
        super().__init__(
            code=PaymentCode.INTENT_EXPIRED,
            message="Payment has expired",
            error_type="PaymentIntentExpired",
            details={"id": intent_id},
        )
        self.intent_id = intent_id


class PaymentIntentUpdateBlockedException(BusinessException):
    """条件更新未命中且无法解释；正确的存储语义下不应出现"""

    def __init__(self, intent_id: str):
        super().__init__(
            code=PaymentCode.INTENT_UPDATE_BLOCKED,
            message="Payment could not be updated",
            error_type="PaymentIntentUpdateBlocked",
            details={"id": intent_id},
        )
        self.intent_id = intent_id


class DuplicateIdempotencyKeyError(Exception):
    """存储层唯一约束冲突信号：(scope_id, idempotency_key) 已存在。

    仅在创建流程内部使用，由领域服务吞掉并返回已有记录，不会暴露给调用方。
    """

    def __init__(self, scope_id: str, idempotency_key: str):
        self.scope_id = scope_id
        self.idempotency_key = idempotency_key
        super().__init__(
            f"payment intent already exists for scope_id={scope_id}, "
            f"idempotency_key={idempotency_key}"
        )
