"""时钟抽象：领域服务通过它获取当前时间，测试可注入固定/可推进的时钟"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class Clock(ABC):
    """
    时钟端口

    约定：
    - now() 必须返回 tzinfo 为 UTC 的 datetime
    - 不允许返回 naive datetime
    """

    @abstractmethod
    def now(self) -> datetime:
        """返回当前 UTC 时间"""
        ...
