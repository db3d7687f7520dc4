"""
支付意图数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Index, UniqueConstraint
)
from datetime import datetime, timezone

from .base import Base


class PaymentIntentModel(Base):
    """
    支付意图数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment_intent 中
    """
    __tablename__ = "payment_intents"

    # 主键（不透明 UUID 字符串）
    id = Column(String(36), primary_key=True, comment="支付意图ID")

    # 商户范围
    scope_id = Column(String(64), nullable=False, index=True, comment="商户范围ID")

    # 金额（最小货币单位整数，如便士）
    amount = Column(Integer, nullable=False, comment="金额（最小货币单位）")
    currency = Column(String(3), nullable=False, default="GBP", comment="货币代码 ISO-4217")
    method = Column(String(8), nullable=False, comment="收款方式: CARD/QR")

    # 状态
    status = Column(
        String(16),
        nullable=False,
        index=True,
        comment="状态: PENDING/SUCCEEDED/FAILED/CANCELLED/EXPIRED"
    )
    failure_reason = Column(String(100), nullable=True, comment="失败原因")

    expires_at = Column(DateTime(timezone=True), nullable=False, index=True, comment="过期时间")

    # 幂等键（可空；NULL 不参与唯一约束）
    idempotency_key = Column(String(255), nullable=True, comment="幂等键")

    # 时间戳
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )

    __table_args__ = (
        UniqueConstraint("scope_id", "idempotency_key", name="uq_payment_intents_scope_idempotency_key"),
        # 交易列表：按商户、创建时间倒序
        Index("ix_payment_intents_scope_created_at", "scope_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentIntentModel(id='{self.id}', amount={self.amount}, "
            f"currency='{self.currency}', status='{self.status}')>"
        )
