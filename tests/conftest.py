"""公共测试夹具"""

from __future__ import annotations

import pytest


class FakeClock:
    """可手动推进的单调时钟"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
