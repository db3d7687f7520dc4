"""
Payment intent specific codes.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Payment intent lifecycle conflicts (6xxxx)
    INTENT_NOT_FOUND = 60100
    INTENT_ALREADY_FINAL = 60101
    INTENT_EXPIRED = 60102
    INTENT_UPDATE_BLOCKED = 60103


__all__ = ["PaymentCode"]
