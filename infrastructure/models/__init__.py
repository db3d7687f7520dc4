"""Infrastructure models package exports."""
from .base import Base
from .payment_intent import PaymentIntentModel

__all__ = [
    "Base",
    "PaymentIntentModel",
]
