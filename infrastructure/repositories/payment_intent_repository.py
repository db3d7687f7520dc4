"""
支付意图仓储实现 - 使用SQLAlchemy实现数据访问

条件更新翻译为单条 UPDATE ... WHERE ... RETURNING 语句：
数据库的行级原子性保证同一记录上的并发转换至多一个命中。
"""
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.payment_intent.entity import PaymentIntent, PaymentIntentStatus, PaymentMethod
from domain.payment_intent.exceptions import DuplicateIdempotencyKeyError
from domain.payment_intent.repository import IntentGuard, IntentMutation, PaymentIntentRepository
from infrastructure.models.payment_intent import PaymentIntentModel
from core.logging_config import get_logger


logger = get_logger(__name__)

_table = PaymentIntentModel.__table__


class SQLAlchemyPaymentIntentRepository(PaymentIntentRepository):
    """支付意图仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, row) -> PaymentIntent:
        """将数据库模型（或 RETURNING 行）转换为领域实体"""
        return PaymentIntent(
            id=row.id,
            scope_id=row.scope_id,
            amount=int(row.amount),
            currency=row.currency,
            method=PaymentMethod(row.method),
            status=PaymentIntentStatus(row.status),
            failure_reason=row.failure_reason,
            expires_at=row.expires_at,
            idempotency_key=row.idempotency_key,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_model(self, entity: PaymentIntent) -> PaymentIntentModel:
        """将领域实体转换为数据库模型"""
        return PaymentIntentModel(
            id=entity.id,
            scope_id=entity.scope_id,
            amount=entity.amount,
            currency=entity.currency,
            method=entity.method.value,
            status=entity.status.value,
            failure_reason=entity.failure_reason,
            expires_at=entity.expires_at,
            idempotency_key=entity.idempotency_key,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    @staticmethod
    def _guard_clauses(guard: IntentGuard) -> list:
        clauses = [_table.c.scope_id == guard.scope_id]
        if guard.status_in is not None:
            clauses.append(_table.c.status.in_(sorted(s.value for s in guard.status_in)))
        if guard.status_not_in is not None:
            clauses.append(_table.c.status.not_in(sorted(s.value for s in guard.status_not_in)))
        if guard.expires_after is not None:
            clauses.append(_table.c.expires_at > guard.expires_after)
        if guard.expires_at_or_before is not None:
            clauses.append(_table.c.expires_at <= guard.expires_at_or_before)
        return clauses

    @staticmethod
    def _mutation_values(mutation: IntentMutation) -> dict:
        values = {
            "status": mutation.status.value,
            "updated_at": mutation.updated_at,
        }
        if mutation.failure_reason is not None:
            values["failure_reason"] = mutation.failure_reason
        return values

    async def insert(self, intent: PaymentIntent) -> PaymentIntent:
        """创建支付意图记录"""
        db_intent = self._to_model(intent)
        self.session.add(db_intent)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if intent.idempotency_key is not None and "idempotency_key" in str(e.orig).lower():
                logger.info(
                    "payment_intent_idempotency_conflict",
                    scope_id=intent.scope_id,
                    idempotency_key=intent.idempotency_key,
                )
                raise DuplicateIdempotencyKeyError(intent.scope_id, intent.idempotency_key) from e
            raise
        logger.info(
            "payment_intent_inserted",
            payment_intent_id=db_intent.id,
            scope_id=db_intent.scope_id,
            amount=db_intent.amount,
            currency=db_intent.currency,
        )
        return self._to_entity(db_intent)

    async def find_by_id(self, scope_id: str, intent_id: str) -> Optional[PaymentIntent]:
        """根据ID获取支付意图（总是读取最新行，不复用会话中的旧对象）"""
        result = await self.session.execute(
            select(PaymentIntentModel)
            .where(
                PaymentIntentModel.id == intent_id,
                PaymentIntentModel.scope_id == scope_id,
            )
            .execution_options(populate_existing=True)
        )
        db_intent = result.scalar_one_or_none()
        return self._to_entity(db_intent) if db_intent else None

    async def find_by_idempotency_key(
        self,
        scope_id: str,
        idempotency_key: str,
    ) -> Optional[PaymentIntent]:
        """根据幂等键获取支付意图"""
        result = await self.session.execute(
            select(PaymentIntentModel)
            .where(
                PaymentIntentModel.scope_id == scope_id,
                PaymentIntentModel.idempotency_key == idempotency_key,
            )
            .execution_options(populate_existing=True)
        )
        db_intent = result.scalar_one_or_none()
        return self._to_entity(db_intent) if db_intent else None

    async def conditional_update(
        self,
        intent_id: str,
        guard: IntentGuard,
        mutation: IntentMutation,
    ) -> Optional[PaymentIntent]:
        """单条原子条件更新，未命中返回 None"""
        stmt = (
            update(_table)
            .where(_table.c.id == intent_id, *self._guard_clauses(guard))
            .values(**self._mutation_values(mutation))
            .returning(*_table.c)
        )
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        return self._to_entity(row) if row is not None else None

    async def bulk_conditional_update(
        self,
        guard: IntentGuard,
        mutation: IntentMutation,
    ) -> int:
        """批量条件更新，返回受影响行数"""
        stmt = (
            update(_table)
            .where(*self._guard_clauses(guard))
            .values(**self._mutation_values(mutation))
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def query(
        self,
        scope_id: str,
        *,
        status: Optional[PaymentIntentStatus] = None,
        limit: int = 50,
    ) -> List[PaymentIntent]:
        """按创建时间倒序获取支付意图列表"""
        query = select(PaymentIntentModel).where(PaymentIntentModel.scope_id == scope_id)

        if status:
            query = query.where(PaymentIntentModel.status == status.value)

        query = (
            query.order_by(PaymentIntentModel.created_at.desc())
            .limit(limit)
            .execution_options(populate_existing=True)
        )

        result = await self.session.execute(query)
        return [self._to_entity(m) for m in result.scalars().all()]
