"""调用上下文 — 截止时间 + 取消信号

每次调用沿流水线传递一个 CallContext：
- deadline: 基于 clock() 的绝对截止时间，None 表示不限时
- 取消信号: threading.Event，子上下文同时感知父上下文的取消

with_timeout() 派生子上下文，截止时间取 min(父截止时间, now + seconds)。
clock 可注入，测试中使用可手动推进的假时钟。
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from gitbridge.core.exceptions import DeadlineExceededError, OperationCanceledError

Clock = Callable[[], float]


class CallContext:
    """可取消、可限时的调用上下文"""

    def __init__(
        self,
        *,
        deadline: float | None = None,
        clock: Clock = time.monotonic,
        parent: CallContext | None = None,
    ) -> None:
        self.clock = clock
        self.deadline = deadline
        self._parent = parent
        self._cancel_event = threading.Event()

    @classmethod
    def background(cls, *, clock: Clock = time.monotonic) -> CallContext:
        """不限时、未取消的根上下文"""
        return cls(clock=clock)

    @classmethod
    def with_deadline_in(cls, seconds: float, *, clock: Clock = time.monotonic) -> CallContext:
        return cls(deadline=clock() + seconds, clock=clock)

    def with_timeout(self, seconds: float) -> CallContext:
        """派生子上下文，有效截止时间为父截止时间与 now + seconds 的较早者"""
        bound = self.clock() + seconds
        deadline = bound if self.deadline is None else min(self.deadline, bound)
        return CallContext(deadline=deadline, clock=self.clock, parent=self)

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        if self._cancel_event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def expired(self) -> bool:
        return self.deadline is not None and self.clock() >= self.deadline

    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self, default: float | None = None) -> float | None:
        """距截止时间的剩余秒数（不小于 0）；不限时则返回 default"""
        if self.deadline is None:
            return default
        left = max(0.0, self.deadline - self.clock())
        return left if default is None else min(left, default)

    def raise_if_done(self, stage: str = "") -> None:
        """已取消或已超时则抛出对应异常"""
        if self.cancelled:
            raise OperationCanceledError("操作已取消", stage=stage)
        if self.expired:
            raise DeadlineExceededError("操作超时", stage=stage)
