"""Payment intent domain exports."""
from .entity import PaymentIntent, PaymentIntentStatus, PaymentMethod, TERMINAL_STATUSES
from .repository import IntentGuard, IntentMutation, PaymentIntentRepository

__all__ = [
    "PaymentIntent",
    "PaymentIntentStatus",
    "PaymentMethod",
    "TERMINAL_STATUSES",
    "IntentGuard",
    "IntentMutation",
    "PaymentIntentRepository",
]
