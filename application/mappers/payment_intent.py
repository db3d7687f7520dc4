"""Mapping between payment intent domain entities and outward DTOs."""
from __future__ import annotations

from application.dtos.payment_intents import PaymentIntentDTO
from domain.payment_intent.entity import PaymentIntent


def build_customer_url(base_url: str, intent_id: str) -> str:
    return f"{base_url.rstrip('/')}/pay/{intent_id}"


def to_payment_intent_dto(intent: PaymentIntent, base_url: str) -> PaymentIntentDTO:
    return PaymentIntentDTO(
        id=intent.id,
        scope_id=intent.scope_id,
        amount=intent.amount,
        currency=intent.currency,
        method=intent.method,
        status=intent.status,
        failure_reason=intent.failure_reason,
        expires_at=intent.expires_at,
        created_at=intent.created_at,
        updated_at=intent.updated_at,
        customer_url=build_customer_url(base_url, intent.id),
    )
