from datetime import datetime, timedelta, timezone

from domain.common.clock import Clock


class SystemClock(Clock):
    """生产环境时钟：系统 UTC 时间"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """测试时钟：固定时间，可显式设置或推进

    非线程安全，仅用于单事件循环内的测试。
    """

    def __init__(self, fixed_time: datetime) -> None:
        self._validate_utc(fixed_time)
        self._fixed_time = fixed_time

    def now(self) -> datetime:
        return self._fixed_time

    def set_time(self, new_time: datetime) -> None:
        self._validate_utc(new_time)
        self._fixed_time = new_time

    def advance(self, seconds: float) -> datetime:
        self._fixed_time = self._fixed_time + timedelta(seconds=seconds)
        return self._fixed_time

    @staticmethod
    def _validate_utc(dt: datetime) -> None:
        if dt.tzinfo is None or dt.utcoffset() != timedelta(0):
            raise ValueError(f"datetime must be UTC, got tzinfo={dt.tzinfo}")
