"""RateLimitStore -- 按调用方标识的固定窗口限流

每次检查时顺带清理已过期的窗口（sweep on read），不依赖后台任务。
时钟可注入，测试无需真实等待。
"""

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


class RateLimitStore:
    """固定窗口计数器"""

    def __init__(
        self,
        limit: int,
        window_s: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            limit: 窗口内允许的最大请求数，0 表示不限流
            window_s: 窗口长度（秒）
            clock: 单调时钟
        """
        self.limit = limit
        self.window_s = window_s
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [k for k, w in self._windows.items() if now - w.started_at >= self.window_s]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str) -> tuple[bool, float]:
        """记录一次请求

        Returns:
            (是否放行, 距窗口重置的秒数)
        """
        if self.limit <= 0:
            return True, 0.0
        now = self._clock()
        self._sweep(now)

        window = self._windows.get(key)
        if window is None:
            window = _Window(started_at=now, count=0)
            self._windows[key] = window

        retry_after = max(0.0, self.window_s - (now - window.started_at))
        if window.count >= self.limit:
            return False, retry_after
        window.count += 1
        return True, retry_after
