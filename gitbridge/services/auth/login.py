"""GCP 登录

GCRClient 串联: 自动登录开关 -> 元数据令牌 -> 凭据 -> 认证参数。
元数据服务只在 GCP 环境内可达，未显式开启 auto_login 时绝不发起请求。
"""

from __future__ import annotations

import logging
from urllib.parse import SplitResult

from gitbridge.core.config import DEFAULT_TOKEN_URL, Config
from gitbridge.core.context import CallContext
from gitbridge.core.exceptions import (
    EmptyCredentialError,
    GitBridgeError,
    IneligibleHostError,
    ProviderUnconfiguredError,
)
from gitbridge.core.models import AuthOptions, Credential
from gitbridge.services.auth.bridge import to_auth_options, to_credential
from gitbridge.services.auth.token import MetadataTokenFetcher
from gitbridge.utils.net import host_of, parse_repo_url, valid_host

logger = logging.getLogger(__name__)


class GCRClient:
    """GCP 凭据客户端"""

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        *,
        fetcher: MetadataTokenFetcher | None = None,
        allow_empty_token: bool = False,
        require_eligible_host: bool = False,
        metadata_timeout: float = 30.0,
    ) -> None:
        self._fetcher = fetcher or MetadataTokenFetcher(token_url, timeout=metadata_timeout)
        self.allow_empty_token = allow_empty_token
        self.require_eligible_host = require_eligible_host

    @classmethod
    def from_config(cls, config: Config) -> GCRClient:
        return cls(
            config.token_url,
            allow_empty_token=config.allow_empty_token,
            require_eligible_host=config.require_eligible_host,
            metadata_timeout=config.metadata_timeout,
        )

    @property
    def token_url(self) -> str:
        return self._fetcher.token_url

    def login(self, ctx: CallContext, auto_login: bool, label: str) -> Credential:
        """获取 GCR 凭据

        label 仅用于日志（镜像名或仓库 URL）。
        """
        if not auto_login:
            raise ProviderUnconfiguredError("GCR 认证失败: 未开启自动登录", stage="login")

        logger.info("登录 GCP GCR: %s", label)
        try:
            token = self._fetcher.fetch_token(ctx)
        except GitBridgeError as e:
            logger.warning("GCP 登录失败 %s: %s", label, e, extra={"stage": e.stage or "login"})
            raise

        if not token.access_token and not self.allow_empty_token:
            logger.warning("GCP 登录失败 %s: 元数据服务返回空令牌", label, extra={"stage": "login"})
            raise EmptyCredentialError("元数据服务返回空的 access_token", stage="login")
        return to_credential(token)

    def build_auth_options(
        self,
        ctx: CallContext,
        url: str | SplitResult,
        *,
        auto_login: bool = True,
    ) -> AuthOptions:
        """为仓库 URL 构造 git 认证参数"""
        parsed = parse_repo_url(url)
        host = host_of(parsed)
        if self.require_eligible_host and not valid_host(host):
            raise IneligibleHostError(f"主机不接受 GCR 凭据: {host}", stage="auth")

        # 日志标签去掉 userinfo
        label = parsed._replace(netloc=parsed.netloc.rpartition("@")[2]).geturl()
        credential = self.login(ctx, auto_login, label)
        return to_auth_options(credential, parsed)
