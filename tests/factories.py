"""测试共用常量"""
from datetime import datetime, timezone


SCOPE = "merchant-a"
START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
BASE_URL = "https://pay.example.test"
