from __future__ import annotations

import asyncio
import copy
from typing import Dict, List, Optional, Tuple

from domain.payment_intent.entity import PaymentIntent, PaymentIntentStatus
from domain.payment_intent.exceptions import DuplicateIdempotencyKeyError
from domain.payment_intent.repository import IntentGuard, IntentMutation, PaymentIntentRepository


class InMemoryPaymentIntentRepository(PaymentIntentRepository):
    """In-memory payment intent store for tests and local runs.

    Implementation notes:
    - Keyed by intent id, with a secondary (scope_id, idempotency_key) index
    - Returns deep copies to mimic database detachment
    - One asyncio.Lock makes evaluate-and-apply atomic, so concurrent
      conditional updates on the same record have at most one winner
    - Single event loop only; not shared across processes
    """

    def __init__(self) -> None:
        self._intents: Dict[str, PaymentIntent] = {}
        self._by_idempotency_key: Dict[Tuple[str, str], str] = {}
        self._lock = asyncio.Lock()

    async def insert(self, intent: PaymentIntent) -> PaymentIntent:
        async with self._lock:
            if intent.idempotency_key is not None:
                key = (intent.scope_id, intent.idempotency_key)
                if key in self._by_idempotency_key:
                    raise DuplicateIdempotencyKeyError(intent.scope_id, intent.idempotency_key)
                self._by_idempotency_key[key] = intent.id
            self._intents[intent.id] = copy.deepcopy(intent)
            return copy.deepcopy(intent)

    async def find_by_id(self, scope_id: str, intent_id: str) -> Optional[PaymentIntent]:
        intent = self._intents.get(intent_id)
        if intent is None or intent.scope_id != scope_id:
            return None
        return copy.deepcopy(intent)

    async def find_by_idempotency_key(
        self,
        scope_id: str,
        idempotency_key: str,
    ) -> Optional[PaymentIntent]:
        intent_id = self._by_idempotency_key.get((scope_id, idempotency_key))
        if intent_id is None:
            return None
        return copy.deepcopy(self._intents[intent_id])

    async def conditional_update(
        self,
        intent_id: str,
        guard: IntentGuard,
        mutation: IntentMutation,
    ) -> Optional[PaymentIntent]:
        async with self._lock:
            intent = self._intents.get(intent_id)
            if intent is None or not guard.matches(intent):
                return None
            self._apply(intent, mutation)
            return copy.deepcopy(intent)

    async def bulk_conditional_update(
        self,
        guard: IntentGuard,
        mutation: IntentMutation,
    ) -> int:
        async with self._lock:
            matched = [i for i in self._intents.values() if guard.matches(i)]
            for intent in matched:
                self._apply(intent, mutation)
            return len(matched)

    async def query(
        self,
        scope_id: str,
        *,
        status: Optional[PaymentIntentStatus] = None,
        limit: int = 50,
    ) -> List[PaymentIntent]:
        items = [
            i for i in self._intents.values()
            if i.scope_id == scope_id and (status is None or i.status == status)
        ]
        items.sort(key=lambda i: i.created_at, reverse=True)
        return [copy.deepcopy(i) for i in items[:limit]]

    @staticmethod
    def _apply(intent: PaymentIntent, mutation: IntentMutation) -> None:
        intent.status = mutation.status
        intent.updated_at = mutation.updated_at
        if mutation.failure_reason is not None:
            intent.failure_reason = mutation.failure_reason
