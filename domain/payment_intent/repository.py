"""
支付意图仓储接口 - 定义记录存储的抽象契约

唯一的并发原语是条件更新：仅当记录当前满足守卫条件时才原子地应用变更。
同一条记录上的并发转换最多只有一个能成功（行级 compare-and-set）。
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, List, Optional

from .entity import PaymentIntent, PaymentIntentStatus


@dataclass(frozen=True)
class IntentGuard:
    """
    条件更新的守卫（WHERE 子句）

    所有非空条件做 AND 组合；内存实现用 matches() 求值，SQL 实现翻译成 WHERE。
    """

    scope_id: str
    status_in: Optional[FrozenSet[PaymentIntentStatus]] = None
    status_not_in: Optional[FrozenSet[PaymentIntentStatus]] = None
    expires_after: Optional[datetime] = None        # expires_at > t
    expires_at_or_before: Optional[datetime] = None  # expires_at <= t

    def matches(self, intent: PaymentIntent) -> bool:
        if intent.scope_id != self.scope_id:
            return False
        if self.status_in is not None and intent.status not in self.status_in:
            return False
        if self.status_not_in is not None and intent.status in self.status_not_in:
            return False
        if self.expires_after is not None and not intent.expires_at > self.expires_after:
            return False
        if self.expires_at_or_before is not None and not intent.expires_at <= self.expires_at_or_before:
            return False
        return True


@dataclass(frozen=True)
class IntentMutation:
    """条件更新命中后写入的字段"""

    status: PaymentIntentStatus
    updated_at: datetime
    failure_reason: Optional[str] = None


class PaymentIntentRepository(ABC):
    """支付意图仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def insert(self, intent: PaymentIntent) -> PaymentIntent:
        """
        新增记录

        Raises:
            DuplicateIdempotencyKeyError: (scope_id, idempotency_key) 已存在
        """

    @abstractmethod
    async def find_by_id(self, scope_id: str, intent_id: str) -> Optional[PaymentIntent]:
        """根据ID获取，不存在返回 None"""

    @abstractmethod
    async def find_by_idempotency_key(
        self,
        scope_id: str,
        idempotency_key: str,
    ) -> Optional[PaymentIntent]:
        """根据幂等键获取"""

    @abstractmethod
    async def conditional_update(
        self,
        intent_id: str,
        guard: IntentGuard,
        mutation: IntentMutation,
    ) -> Optional[PaymentIntent]:
        """
        原子条件更新单条记录

        Returns:
            命中时返回更新后的记录；记录不存在或不满足守卫时返回 None
        """

    @abstractmethod
    async def bulk_conditional_update(
        self,
        guard: IntentGuard,
        mutation: IntentMutation,
    ) -> int:
        """批量条件更新，返回受影响的记录数"""

    @abstractmethod
    async def query(
        self,
        scope_id: str,
        *,
        status: Optional[PaymentIntentStatus] = None,
        limit: int = 50,
    ) -> List[PaymentIntent]:
        """按创建时间倒序查询"""
