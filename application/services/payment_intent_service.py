"""
Application service orchestrating payment intent use-cases.

Each call opens its own unit of work, runs one lifecycle operation of the
domain service inside it, and maps the resulting record to a DTO. Store calls
are bounded by a timeout; a timeout surfaces as a retryable failure.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict
from typing import Awaitable, Callable, Optional, TypeVar

from application.dtos.payment_intents import (
    CreatePaymentIntentDTO,
    PaymentIntentDTO,
)
from application.mappers.payment_intent import to_payment_intent_dto
from core.config import settings
from core.logging_config import get_logger
from domain.common.clock import Clock
from domain.common.exceptions import BusinessException, StoreUnavailableException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.payment_intent.entity import PaymentIntentStatus, PaymentMethod
from domain.payment_intent.exceptions import PaymentIntentUpdateBlockedException
from domain.payment_intent.service import LifecyclePolicy, PaymentIntentDomainService


logger = get_logger(__name__)

T = TypeVar("T")


def policy_from_settings() -> LifecyclePolicy:
    cfg = settings.payment_intent
    return LifecyclePolicy(
        default_currency=cfg.default_currency,
        default_method=PaymentMethod(cfg.default_method),
        default_expiry_seconds=cfg.default_expiry_seconds,
        default_failure_reason=cfg.default_failure_reason,
        default_list_limit=cfg.default_list_limit,
        max_list_limit=cfg.max_list_limit,
    )


class PaymentIntentApplicationService:
    """High-level payment intent workflows bridging API and domain layers."""

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        clock: Clock,
        *,
        policy: Optional[LifecyclePolicy] = None,
        public_base_url: Optional[str] = None,
        store_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock
        self._policy = policy or policy_from_settings()
        self._base_url = public_base_url or settings.payment_intent.public_base_url
        self._store_timeout = (
            store_timeout_seconds
            if store_timeout_seconds is not None
            else settings.payment_intent.store_timeout_seconds
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _to_dto(self, intent) -> PaymentIntentDTO:
        return to_payment_intent_dto(intent, self._base_url)

    async def _run(
        self,
        operation: str,
        work: Callable[[PaymentIntentDomainService], Awaitable[T]],
    ) -> T:
        async def _in_unit_of_work() -> T:
            async with self._uow_factory() as uow:
                domain = PaymentIntentDomainService(
                    uow.payment_intent_repository, self._clock, self._policy
                )
                result = await work(domain)
            # 事务提交后再发布事件
            self._publish_events(domain.clear_events())
            return result

        try:
            return await asyncio.wait_for(_in_unit_of_work(), timeout=self._store_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "payment_intent_store_timeout",
                operation=operation,
                timeout_seconds=self._store_timeout,
            )
            raise StoreUnavailableException(operation) from None

    def _publish_events(self, events: list) -> None:
        for event in events:
            payload = asdict(event)
            payload["occurred_at"] = event.occurred_at.isoformat()
            logger.info("payment_intent_event", event_type=type(event).__name__, **payload)

    async def _transition(
        self,
        operation: str,
        intent_id: str,
        work: Callable[[PaymentIntentDomainService], Awaitable[T]],
    ) -> PaymentIntentDTO:
        try:
            intent = await self._run(operation, work)
        except PaymentIntentUpdateBlockedException:
            # 条件更新未命中却无法解释：存储未遵守原子条件更新契约
            logger.error(
                "payment_intent_update_blocked",
                operation=operation,
                payment_intent_id=intent_id,
            )
            raise
        except StoreUnavailableException:
            # 超时已在 _run 中记录
            raise
        except BusinessException as exc:
            logger.info(
                "payment_intent_transition_rejected",
                operation=operation,
                payment_intent_id=intent_id,
                error_type=exc.error_type,
            )
            raise
        return self._to_dto(intent)

    # ------------------------------------------------------------------
    # Use cases
    # ------------------------------------------------------------------
    async def create_intent(
        self,
        req: CreatePaymentIntentDTO,
        *,
        scope_id: str,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentDTO:
        logger.info(
            "payment_intent_create_request",
            scope_id=scope_id,
            amount=req.amount,
            method=req.method.value if req.method else None,
            idempotency_key=idempotency_key,
        )
        intent = await self._run(
            "create",
            lambda domain: domain.create_intent(
                scope_id=scope_id,
                amount=req.amount,
                currency=req.currency,
                method=req.method,
                expires_in_seconds=req.expires_in_seconds,
                idempotency_key=idempotency_key,
            ),
        )
        return self._to_dto(intent)

    async def get_intent(self, intent_id: str, *, scope_id: str) -> PaymentIntentDTO:
        intent = await self._run(
            "get",
            lambda domain: domain.get_intent(scope_id=scope_id, intent_id=intent_id),
        )
        return self._to_dto(intent)

    async def confirm_intent(self, intent_id: str, *, scope_id: str) -> PaymentIntentDTO:
        return await self._transition(
            "confirm",
            intent_id,
            lambda domain: domain.confirm_intent(scope_id=scope_id, intent_id=intent_id),
        )

    async def fail_intent(
        self,
        intent_id: str,
        *,
        scope_id: str,
        reason: Optional[str] = None,
    ) -> PaymentIntentDTO:
        return await self._transition(
            "fail",
            intent_id,
            lambda domain: domain.fail_intent(scope_id=scope_id, intent_id=intent_id, reason=reason),
        )

    async def cancel_intent(self, intent_id: str, *, scope_id: str) -> PaymentIntentDTO:
        return await self._transition(
            "cancel",
            intent_id,
            lambda domain: domain.cancel_intent(scope_id=scope_id, intent_id=intent_id),
        )

    async def list_intents(
        self,
        *,
        scope_id: str,
        limit: Optional[int] = None,
        status: Optional[PaymentIntentStatus] = None,
    ) -> list[PaymentIntentDTO]:
        intents = await self._run(
            "list",
            lambda domain: domain.list_intents(scope_id=scope_id, limit=limit, status=status),
        )
        return [self._to_dto(i) for i in intents]
