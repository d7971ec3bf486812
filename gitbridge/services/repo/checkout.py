"""代码仓 Checkout 执行器

职责：
- 在调用方上下文之下叠加固定上限（默认 180 秒）的截止时间
- 按传输方式配置客户端（仅 http:// 目标允许明文发送凭据）
- 执行浅克隆并返回提交信息，客户端在任何退出路径上都会被关闭

目标目录由调用方创建和清理，失败时残留内容不在此处删除。
"""

from __future__ import annotations

import logging
from contextlib import closing
from pathlib import Path
from typing import Callable
from urllib.parse import urlsplit

from gitbridge.core.context import CallContext
from gitbridge.core.exceptions import CheckoutError, GitBridgeError
from gitbridge.core.models import AuthOptions, CloneConfig, CommitInfo, Transport
from gitbridge.services.repo.client import ClientOptions, GitClient, new_client

logger = logging.getLogger(__name__)

DEFAULT_CHECKOUT_TIMEOUT = 180.0

ClientFactory = Callable[[Path, AuthOptions, ClientOptions], GitClient]


class GitCheckout:
    """Checkout 执行器"""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_CHECKOUT_TIMEOUT,
        client_factory: ClientFactory = new_client,
        git_binary: str = "git",
    ) -> None:
        self.timeout = timeout
        self._client_factory = client_factory
        self.git_binary = git_binary

    def client_options(self, repo_url: str, auth: AuthOptions) -> ClientOptions:
        insecure = auth.transport is Transport.HTTP and urlsplit(repo_url).scheme == "http"
        return ClientOptions(insecure_credentials_over_http=insecure, git_binary=self.git_binary)

    def checkout(
        self,
        ctx: CallContext,
        repo_url: str,
        auth: AuthOptions,
        destination_dir: str | Path,
        clone_config: CloneConfig | None = None,
    ) -> CommitInfo:
        """浅克隆 repo_url 到 destination_dir

        Raises:
            AuthRejectedError: 远端拒绝凭据
            TransportError: 远端不可达
            DeadlineExceededError / OperationCanceledError: 超时或取消
            CheckoutError: 其余失败（含磁盘错误）
        """
        git_ctx = ctx.with_timeout(self.timeout)
        cfg = clone_config or CloneConfig(shallow_clone=True)
        dest = Path(destination_dir)
        options = self.client_options(repo_url, auth)

        logger.info("开始检出 -> %s (shallow=%s)", dest, cfg.shallow_clone)
        try:
            with closing(self._client_factory(dest, auth, options)) as client:
                commit = client.clone(git_ctx, repo_url, cfg)
        except GitBridgeError as e:
            logger.error("检出失败 %s: %s", dest, e, extra={"stage": e.stage or "checkout"})
            raise
        except (OSError, ValueError) as e:
            logger.error("检出失败 %s: %s", dest, e, extra={"stage": "checkout"})
            raise CheckoutError(f"检出失败: {e}", stage="checkout") from e

        logger.info("检出完成: %s", commit)
        return commit
