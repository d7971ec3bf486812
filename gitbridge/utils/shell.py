"""子进程执行工具 — 可取消、受截止时间约束的命令执行

通过 CommandExecutor 协议抽象子进程执行，测试时注入 mock 实现，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from typing import Protocol

from gitbridge.core.context import CallContext

logger = logging.getLogger(__name__)

# 轮询取消信号的间隔（秒）
POLL_INTERVAL = 0.2

# 终止进程组后等待管道关闭的上限（秒）
KILL_GRACE = 5.0


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议"""

    def execute(
        self,
        args: list[str],
        ctx: CallContext,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        stage: str = "",
    ) -> CommandResult:
        """执行命令并返回结果；上下文取消或超时时终止进程并抛出对应异常"""
        ...


# =========================================================================
# 默认实现: 本地进程执行器
# =========================================================================

class LocalExecutor:
    """本地子进程执行器（默认实现）

    进程运行期间按 POLL_INTERVAL 轮询上下文，一旦取消或超时即 kill 并回收。
    """

    def __init__(self, poll_interval: float = POLL_INTERVAL) -> None:
        self.poll_interval = poll_interval

    def execute(
        self,
        args: list[str],
        ctx: CallContext,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        stage: str = "",
    ) -> CommandResult:
        ctx.raise_if_done(stage)
        logger.debug("  %s: %s (cwd=%s)", stage or "cmd", args[0], cwd)
        # 独立进程组: git 派生的 git-remote-https / ssh 会继承输出管道，需整组终止
        with subprocess.Popen(
            args, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
            stdin=subprocess.DEVNULL, text=True, cwd=cwd, env=env,
            start_new_session=True,
        ) as proc:
            while True:
                wait = ctx.remaining(default=self.poll_interval)
                try:
                    stdout, stderr = proc.communicate(timeout=max(wait, 0.01))
                    break
                except subprocess.TimeoutExpired:
                    if ctx.done():
                        self._kill_group(proc)
                        logger.warning("%s 已终止: 上下文取消或超时", stage or "cmd", extra={"stage": stage})
                        ctx.raise_if_done(stage)
        return CommandResult(returncode=proc.returncode, stdout=stdout, stderr=stderr)

    @staticmethod
    def _kill_group(proc: subprocess.Popen) -> None:
        """SIGKILL 整个进程组并限时回收输出"""
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass  # 进程组已全部退出
        try:
            proc.communicate(timeout=KILL_GRACE)
        except subprocess.TimeoutExpired:
            logger.warning("进程组 %s 终止后仍未释放输出管道", proc.pid)
