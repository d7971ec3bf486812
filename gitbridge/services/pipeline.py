"""检出流水线

解析 URL -> 获取认证参数 -> 检出 -> 返回提交。
目标目录的创建与清理由调用方负责。
"""

from __future__ import annotations

import logging
from pathlib import Path

from gitbridge.core.config import Config, get_config
from gitbridge.core.context import CallContext
from gitbridge.core.models import CloneConfig, CommitInfo
from gitbridge.services.auth.login import GCRClient
from gitbridge.services.repo.checkout import GitCheckout
from gitbridge.utils.net import parse_repo_url

logger = logging.getLogger(__name__)


class CheckoutPipeline:
    """登录 + 检出的编排器"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        login_client: GCRClient | None = None,
        executor: GitCheckout | None = None,
    ) -> None:
        self.config = config or get_config()
        self.login_client = login_client or GCRClient.from_config(self.config)
        self.executor = executor or GitCheckout(
            timeout=self.config.checkout_timeout,
            git_binary=self.config.git_binary,
        )

    def run(
        self,
        ctx: CallContext,
        url: str,
        destination_dir: str | Path,
        clone_config: CloneConfig | None = None,
    ) -> CommitInfo:
        parsed = parse_repo_url(url)
        auth = self.login_client.build_auth_options(ctx, parsed, auto_login=self.config.auto_login)
        commit = self.executor.checkout(ctx, url, auth, destination_dir, clone_config)
        logger.info("commit: %s", commit)
        return commit
