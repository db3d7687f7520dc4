"""
Payment intent domain events.

Dataclass events record lifecycle facts for downstream handling (logging,
projections). Domain remains free of infrastructure imports.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid


@dataclass
class PaymentIntentEvent:
    intent_id: str
    scope_id: str
    status: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class PaymentIntentCreated(PaymentIntentEvent):
    amount: int = 0
    currency: str = ""
    method: str = ""


@dataclass
class PaymentIntentSucceeded(PaymentIntentEvent):
    pass


@dataclass
class PaymentIntentFailed(PaymentIntentEvent):
    reason: Optional[str] = None


@dataclass
class PaymentIntentCancelled(PaymentIntentEvent):
    pass


@dataclass
class PaymentIntentExpired(PaymentIntentEvent):
    pass


@dataclass
class ExpiredIntentsSwept:
    scope_id: str
    count: int
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
