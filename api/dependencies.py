"""
API依赖项 - 应用服务与商户范围
"""
from fastapi import Depends

from application.services.payment_intent_service import PaymentIntentApplicationService
from core.config import settings
from domain.common.clock import Clock
from infrastructure.clock import SystemClock
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


_system_clock = SystemClock()


async def get_clock() -> Clock:
    return _system_clock


async def get_scope_id() -> str:
    """当前请求所属的商户范围（单商户部署由配置给出）"""
    return settings.payment_intent.scope_id


async def get_payment_intent_service(
    clock: Clock = Depends(get_clock),
) -> PaymentIntentApplicationService:
    return PaymentIntentApplicationService(uow_factory=SQLAlchemyUnitOfWork, clock=clock)
