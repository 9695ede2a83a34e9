"""滑动窗口日志限流。

每个 key 保存窗口内每次放行的时间戳（毫秒）。admit() 时先剔除
`now - ts >= window_ms` 的记录，剩余数量已达上限则拒绝且不记录本次尝试，
否则追加 now 并放行。这样任意长度为 window_ms 的区间内放行次数都不超过上限。

并发：每个 key 一把锁，检查与追加在同一把锁内完成；
全局锁只保护 key -> 窗口 的映射本身。
窗口清空后会在周期性清理中移除，避免访客 token 在进程内无限累积。
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Optional

from chat_intake.config.settings import settings
from chat_intake.domain.exceptions import RateLimitError
from chat_intake.infrastructure.logging.logger import logger, redact_identity

Clock = Callable[[], float]

_log = logger.getChild("rate_limiter")


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class _Window:
    lock: threading.Lock = field(default_factory=threading.Lock)
    timestamps: Deque[float] = field(default_factory=deque)
    window_ms: float = 0.0
    # 已从映射中移除；持有旧引用的线程需要重新取窗口
    evicted: bool = False


class SlidingWindowRateLimiter:
    def __init__(self, clock: Optional[Clock] = None, sweep_every: int = 256):
        self._clock = clock or monotonic_ms
        self._windows: Dict[str, _Window] = {}
        self._map_lock = threading.Lock()
        # 每放行 sweep_every 次清理一次已经空了的窗口
        self._sweep_every = max(1, sweep_every)
        self._admitted = 0

    def __len__(self) -> int:
        with self._map_lock:
            return len(self._windows)

    def admit(self, key: str, max_attempts: int, window_ms: float) -> bool:
        while True:
            window = self._window_for(key)
            with window.lock:
                if window.evicted:
                    continue
                window.window_ms = window_ms
                now = self._clock()
                self._prune(window.timestamps, now, window_ms)
                if len(window.timestamps) >= max_attempts:
                    _log.warning(
                        "Rate limit exceeded",
                        extra={
                            "extra": {
                                "key": redact_identity(key),
                                "attempts": len(window.timestamps),
                                "max_attempts": max_attempts,
                            }
                        },
                    )
                    return False
                window.timestamps.append(now)
                break
        self._maybe_sweep()
        return True

    def remaining(self, key: str, max_attempts: int, window_ms: float) -> int:
        """只读地计算窗口内还剩多少次。"""
        with self._map_lock:
            window = self._windows.get(key)
        if window is None:
            return max(0, max_attempts)
        with window.lock:
            now = self._clock()
            active = sum(1 for ts in window.timestamps if now - ts < window_ms)
        return max(0, max_attempts - active)

    def reset(self, key: str) -> None:
        with self._map_lock:
            window = self._windows.pop(key, None)
            if window is not None:
                with window.lock:
                    window.evicted = True

    def clear_all(self) -> None:
        with self._map_lock:
            for window in self._windows.values():
                with window.lock:
                    window.evicted = True
            self._windows.clear()

    def _maybe_sweep(self) -> None:
        # 锁顺序固定为 map_lock -> window.lock
        with self._map_lock:
            self._admitted += 1
            if self._admitted % self._sweep_every:
                return
            now = self._clock()
            for key, window in list(self._windows.items()):
                with window.lock:
                    self._prune(window.timestamps, now, window.window_ms)
                    if not window.timestamps:
                        window.evicted = True
                        del self._windows[key]

    def _window_for(self, key: str) -> _Window:
        with self._map_lock:
            window = self._windows.get(key)
            if window is None:
                window = _Window()
                self._windows[key] = window
            return window

    @staticmethod
    def _prune(timestamps: Deque[float], now: float, window_ms: float) -> None:
        # 时间戳按追加顺序单调递增，从左侧弹出即可
        while timestamps and now - timestamps[0] >= window_ms:
            timestamps.popleft()


class ChatRateLimitPolicy:
    """带命名空间的限流策略，同一个限流器可以服务多种策略而不冲突。"""

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        namespace: str = "chat",
        max_attempts: Optional[int] = None,
        window_ms: Optional[int] = None,
    ):
        self._limiter = limiter
        self.namespace = namespace
        self.max_attempts = max_attempts if max_attempts is not None else settings.chat_rate_limit_messages
        self.window_ms = window_ms if window_ms is not None else settings.chat_rate_limit_window_ms

    def key(self, identity: str) -> str:
        return f"{self.namespace}:{identity}"

    def admit(self, identity: str) -> bool:
        return self._limiter.admit(self.key(identity), self.max_attempts, self.window_ms)

    def remaining(self, identity: str) -> int:
        return self._limiter.remaining(self.key(identity), self.max_attempts, self.window_ms)

    def check(self, identity: str) -> None:
        """放行则记录本次尝试，否则抛出 RateLimitError（附带剩余次数）。"""
        if not self.admit(identity):
            raise RateLimitError(
                code="CHAT_RATE_LIMITED",
                message=f"more than {self.max_attempts} messages in {self.window_ms} ms",
                remaining=self.remaining(identity),
            )

    def reset(self, identity: str) -> None:
        self._limiter.reset(self.key(identity))


chat_rate_limiter = SlidingWindowRateLimiter()


def check_chat_rate_limit(identity: str) -> bool:
    return ChatRateLimitPolicy(chat_rate_limiter).admit(identity)


def get_remaining_chat_messages(identity: str) -> int:
    return ChatRateLimitPolicy(chat_rate_limiter).remaining(identity)
