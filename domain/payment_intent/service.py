"""
支付意图领域服务 - 生命周期管理核心

职责：
1. 幂等创建（(scope_id, idempotency_key) 冲突时返回已有记录）
2. 读取时惰性过期（无需后台定时任务）
3. 确认/失败/取消三种守卫转换：单条原子条件更新 + 失败原因按固定优先级解释
4. 列表前批量清扫已过期的 PENDING 记录
5. 产生领域事件
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from domain.common.clock import Clock
from .entity import (
    PaymentIntent,
    PaymentIntentStatus,
    PaymentMethod,
    TERMINAL_STATUSES,
    new_intent_id,
)
from .events import (
    ExpiredIntentsSwept,
    PaymentIntentCancelled,
    PaymentIntentCreated,
    PaymentIntentExpired,
    PaymentIntentFailed,
    PaymentIntentSucceeded,
)
from .exceptions import (
    DuplicateIdempotencyKeyError,
    InvalidPaymentIntentInputException,
    PaymentIntentAlreadyFinalException,
    PaymentIntentExpiredException,
    PaymentIntentNotFoundException,
    PaymentIntentUpdateBlockedException,
)
from .repository import IntentGuard, IntentMutation, PaymentIntentRepository


@dataclass(frozen=True)
class LifecyclePolicy:
    """创建与查询时使用的默认值（由应用层从配置构造）"""

    default_currency: str = "GBP"
    default_method: PaymentMethod = PaymentMethod.QR
    default_expiry_seconds: int = 300
    default_failure_reason: str = "DECLINED"
    default_list_limit: int = 50
    max_list_limit: int = 200


class PaymentIntentDomainService:
    """
    支付意图生命周期管理

    服务本身不持有可变的业务状态，所有状态都在仓储中；
    唯一的串行化点是仓储的条件更新，因此无需进程内锁。
    """

    def __init__(
        self,
        repository: PaymentIntentRepository,
        clock: Clock,
        policy: Optional[LifecyclePolicy] = None,
    ):
        self.repository = repository
        self.clock = clock
        self.policy = policy or LifecyclePolicy()
        self.events: List = []  # 领域事件收集

    # ------------------------------------------------------------------
    # 创建
    # ------------------------------------------------------------------
    async def create_intent(
        self,
        *,
        scope_id: str,
        amount: int,
        currency: Optional[str] = None,
        method: Optional[PaymentMethod] = None,
        expires_in_seconds: Optional[int] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent:
        """
        创建支付意图

        业务规则：
        1. 金额必须是正整数（最小货币单位），否则不触达存储
        2. expires_at = now + expires_in_seconds（默认 300 秒）
        3. 幂等键冲突视为客户端重试，返回已有记录而不是报错
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidPaymentIntentInputException(
                f"amount must be a positive integer in minor units: {amount!r}",
                field="amount",
            )

        now = self.clock.now()
        seconds = self.policy.default_expiry_seconds if expires_in_seconds is None else expires_in_seconds
        idempotency_key = idempotency_key or None

        intent = PaymentIntent(
            id=new_intent_id(),
            scope_id=scope_id,
            amount=amount,
            currency=currency or self.policy.default_currency,
            method=method or self.policy.default_method,
            status=PaymentIntentStatus.PENDING,
            expires_at=now + timedelta(seconds=seconds),
            idempotency_key=idempotency_key,
            created_at=now,
            updated_at=now,
        )

        try:
            created = await self.repository.insert(intent)
        except DuplicateIdempotencyKeyError:
            if idempotency_key is None:
                raise
            existing = await self.repository.find_by_idempotency_key(scope_id, idempotency_key)
            if existing is None:
                raise
            return existing

        self.events.append(PaymentIntentCreated(
            intent_id=created.id,
            scope_id=created.scope_id,
            status=created.status.value,
            amount=created.amount,
            currency=created.currency,
            method=created.method.value,
            occurred_at=now,
        ))
        return created

    # ------------------------------------------------------------------
    # 查询（惰性过期）
    # ------------------------------------------------------------------
    async def get_intent(self, *, scope_id: str, intent_id: str) -> PaymentIntent:
        """获取支付意图；非终态且已到期的记录在返回前落库为 EXPIRED"""
        intent = await self.repository.find_by_id(scope_id, intent_id)
        if intent is None:
            raise PaymentIntentNotFoundException(intent_id)

        now = self.clock.now()
        if intent.is_final_status() or not intent.is_expired(now):
            return intent

        expired = await self.repository.conditional_update(
            intent_id,
            self._expiry_guard(scope_id, now),
            IntentMutation(status=PaymentIntentStatus.EXPIRED, updated_at=now),
        )
        if expired is not None:
            self.events.append(PaymentIntentExpired(
                intent_id=expired.id,
                scope_id=expired.scope_id,
                status=expired.status.value,
                occurred_at=now,
            ))
            return expired

        # 并发的转换先一步落库，返回其结果
        current = await self.repository.find_by_id(scope_id, intent_id)
        if current is None:
            raise PaymentIntentNotFoundException(intent_id)
        return current

    # ------------------------------------------------------------------
    # 守卫转换
    # ------------------------------------------------------------------
    async def confirm_intent(self, *, scope_id: str, intent_id: str) -> PaymentIntent:
        """确认支付成功"""
        return await self._transition(scope_id, intent_id, PaymentIntentStatus.SUCCEEDED)

    async def fail_intent(
        self,
        *,
        scope_id: str,
        intent_id: str,
        reason: Optional[str] = None,
    ) -> PaymentIntent:
        """标记支付失败（默认原因 DECLINED）"""
        return await self._transition(
            scope_id,
            intent_id,
            PaymentIntentStatus.FAILED,
            failure_reason=reason or self.policy.default_failure_reason,
        )

    async def cancel_intent(self, *, scope_id: str, intent_id: str) -> PaymentIntent:
        """商户取消"""
        return await self._transition(scope_id, intent_id, PaymentIntentStatus.CANCELLED)

    async def _transition(
        self,
        scope_id: str,
        intent_id: str,
        target: PaymentIntentStatus,
        failure_reason: Optional[str] = None,
    ) -> PaymentIntent:
        now = self.clock.now()
        guard = IntentGuard(
            scope_id=scope_id,
            status_not_in=TERMINAL_STATUSES,
            expires_after=now,
        )
        updated = await self.repository.conditional_update(
            intent_id,
            guard,
            IntentMutation(status=target, updated_at=now, failure_reason=failure_reason),
        )
        if updated is None:
            raise await self._explain_guard_failure(scope_id, intent_id, now)

        self.events.append(self._transition_event(updated, now))
        return updated

    async def _explain_guard_failure(
        self,
        scope_id: str,
        intent_id: str,
        now: datetime,
    ) -> Exception:
        """
        解释条件更新未命中的原因

        终态优先于过期：在 expires_at 前一刻成功的支付不能被报告为已过期。
        """
        existing = await self.repository.find_by_id(scope_id, intent_id)
        if existing is None:
            return PaymentIntentNotFoundException(intent_id)
        if existing.is_final_status():
            return PaymentIntentAlreadyFinalException(intent_id, existing.status)
        if existing.is_expired(now):
            return PaymentIntentExpiredException(intent_id)
        return PaymentIntentUpdateBlockedException(intent_id)

    @staticmethod
    def _transition_event(intent: PaymentIntent, now: datetime):
        common = dict(
            intent_id=intent.id,
            scope_id=intent.scope_id,
            status=intent.status.value,
            occurred_at=now,
        )
        if intent.status == PaymentIntentStatus.SUCCEEDED:
            return PaymentIntentSucceeded(**common)
        if intent.status == PaymentIntentStatus.FAILED:
            return PaymentIntentFailed(reason=intent.failure_reason, **common)
        return PaymentIntentCancelled(**common)

    # ------------------------------------------------------------------
    # 列表（先清扫）
    # ------------------------------------------------------------------
    async def list_intents(
        self,
        *,
        scope_id: str,
        limit: Optional[int] = None,
        status: Optional[PaymentIntentStatus] = None,
    ) -> List[PaymentIntent]:
        """
        列出最近的支付意图

        查询前把本 scope 内所有已到期的 PENDING 记录批量置为 EXPIRED，
        保证列表不会展示过期的待支付记录。
        """
        now = self.clock.now()
        swept = await self.repository.bulk_conditional_update(
            self._expiry_guard(scope_id, now),
            IntentMutation(status=PaymentIntentStatus.EXPIRED, updated_at=now),
        )
        if swept:
            self.events.append(ExpiredIntentsSwept(scope_id=scope_id, count=swept, occurred_at=now))

        return await self.repository.query(
            scope_id,
            status=PaymentIntentStatus(status) if status is not None else None,
            limit=self._clamp_limit(limit),
        )

    def _clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.policy.default_list_limit
        return max(1, min(int(limit), self.policy.max_list_limit))

    @staticmethod
    def _expiry_guard(scope_id: str, now: datetime) -> IntentGuard:
        """惰性过期与批量清扫共用的守卫：非终态且 expires_at <= now"""
        return IntentGuard(
            scope_id=scope_id,
            status_not_in=TERMINAL_STATUSES,
            expires_at_or_before=now,
        )

    def clear_events(self) -> List:
        """清空并返回领域事件"""
        events = self.events.copy()
        self.events.clear()
        return events
