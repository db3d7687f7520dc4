"""
支付意图API路由 - FastAPI表现层

路由只负责参数解析与响应包装，生命周期规则全部在应用/领域层。
"""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Query, status

from api.dependencies import get_payment_intent_service, get_scope_id
from application.dtos.payment_intents import (
    CreatePaymentIntentDTO,
    FailPaymentIntentDTO,
    PaymentIntentDTO,
    PaymentIntentListDTO,
)
from application.services.payment_intent_service import PaymentIntentApplicationService
from core.response import success_response, Response as ApiResponse
from domain.payment_intent.entity import PaymentIntentStatus

router = APIRouter(
    prefix="/payment-intents",
    tags=["支付意图"]
)


@router.post(
    "",
    summary="创建支付意图",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[PaymentIntentDTO],
)
async def create_payment_intent(
    payload: CreatePaymentIntentDTO,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key", max_length=255),
    scope_id: str = Depends(get_scope_id),
    service: PaymentIntentApplicationService = Depends(get_payment_intent_service),
):
    """
    创建支付意图

    - **amount**: 金额（最小货币单位，正整数）
    - **currency**: 货币代码（可选，默认 GBP）
    - **method**: CARD / QR（可选，默认 QR）
    - **expires_in_seconds**: 有效期（可选，默认 300 秒）

    携带相同 Idempotency-Key 的重试返回首次创建的记录。
    """
    intent = await service.create_intent(payload, scope_id=scope_id, idempotency_key=idempotency_key)
    return success_response(data=intent, message="Payment intent created")


@router.get("", summary="最近的支付意图", response_model=ApiResponse[PaymentIntentListDTO])
async def list_payment_intents(
    limit: Optional[int] = Query(None, description="返回条数，超出上限按上限截断"),
    status_filter: Optional[PaymentIntentStatus] = Query(None, alias="status", description="按状态过滤"),
    scope_id: str = Depends(get_scope_id),
    service: PaymentIntentApplicationService = Depends(get_payment_intent_service),
):
    """按创建时间倒序列出；列出前会把已到期的待支付记录标记为 EXPIRED"""
    items = await service.list_intents(scope_id=scope_id, limit=limit, status=status_filter)
    return success_response(data=PaymentIntentListDTO(items=items))


@router.get("/{intent_id}", summary="获取支付意图", response_model=ApiResponse[PaymentIntentDTO])
async def get_payment_intent(
    intent_id: str,
    scope_id: str = Depends(get_scope_id),
    service: PaymentIntentApplicationService = Depends(get_payment_intent_service),
):
    intent = await service.get_intent(intent_id, scope_id=scope_id)
    return success_response(data=intent)


@router.post("/{intent_id}/confirm", summary="确认支付", response_model=ApiResponse[PaymentIntentDTO])
async def confirm_payment_intent(
    intent_id: str,
    scope_id: str = Depends(get_scope_id),
    service: PaymentIntentApplicationService = Depends(get_payment_intent_service),
):
    intent = await service.confirm_intent(intent_id, scope_id=scope_id)
    return success_response(data=intent, message="Payment succeeded")


@router.post("/{intent_id}/fail", summary="标记支付失败", response_model=ApiResponse[PaymentIntentDTO])
async def fail_payment_intent(
    intent_id: str,
    payload: Optional[FailPaymentIntentDTO] = Body(default=None),
    scope_id: str = Depends(get_scope_id),
    service: PaymentIntentApplicationService = Depends(get_payment_intent_service),
):
    """失败原因可选，缺省为 DECLINED"""
    reason = payload.reason if payload else None
    intent = await service.fail_intent(intent_id, scope_id=scope_id, reason=reason)
    return success_response(data=intent, message="Payment failed")


@router.post("/{intent_id}/cancel", summary="取消支付", response_model=ApiResponse[PaymentIntentDTO])
async def cancel_payment_intent(
    intent_id: str,
    scope_id: str = Depends(get_scope_id),
    service: PaymentIntentApplicationService = Depends(get_payment_intent_service),
):
    intent = await service.cancel_intent(intent_id, scope_id=scope_id)
    return success_response(data=intent, message="Payment cancelled")
