"""核心数据模型

Token / Credential / AuthOptions 均为短生命周期的值对象：
不落盘、不缓存，敏感字段不出现在 repr 中。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from gitbridge.core.exceptions import ValidationError

# GCR 约定的 OAuth2 访问令牌用户名
OAUTH2_USERNAME = "oauth2accesstoken"


@dataclass(frozen=True)
class Token:
    """元数据服务签发的访问令牌"""

    access_token: str = field(repr=False)
    expires_in: int = 0  # 秒
    token_type: str = ""


@dataclass(frozen=True)
class Credential:
    """用户名/密码形式的凭据，password 即原始 access_token"""

    username: str
    password: str = field(repr=False)


class Transport(Enum):
    """Git 传输方式（封闭枚举，新增协议需同时扩展 scheme 映射）"""

    HTTP = "http"
    SSH = "ssh"


@dataclass(frozen=True)
class AuthOptions:
    """按传输方式组织的认证参数"""

    transport: Transport
    host: str = ""
    username: bytes = b""
    password: bytes = field(default=b"", repr=False)
    bearer_token: bytes = field(default=b"", repr=False)
    identity: bytes = field(default=b"", repr=False)  # SSH 私钥
    known_hosts: bytes = b""
    ca_file: bytes = b""
    insecure_http: bool = False  # 仅 scheme 为 http 时为 True

    @property
    def data(self) -> dict[str, bytes]:
        """以 "username"/"password" 等键组织的凭据材料，空值不输出"""
        items = {
            "username": self.username,
            "password": self.password,
            "bearerToken": self.bearer_token,
            "identity": self.identity,
            "known_hosts": self.known_hosts,
            "caFile": self.ca_file,
        }
        return {k: v for k, v in items.items() if v}

    def validate(self) -> None:
        if self.transport is Transport.HTTP:
            if self.password and not self.username:
                raise ValidationError("http 认证参数无效: 设置 password 时必须设置 username", stage="auth")
            if self.password and self.bearer_token:
                raise ValidationError("http 认证参数无效: 不能同时设置 password 与 bearerToken", stage="auth")


@dataclass
class CloneConfig:
    """检出策略"""

    shallow_clone: bool = True
    branch: str = ""
    tag: str = ""
    recurse_submodules: bool = False


@dataclass
class CommitInfo:
    """检出得到的提交信息"""

    hash: str
    reference: str = ""      # 如 refs/heads/main
    author: str = ""
    message: str = ""
    committed_at: int = 0    # Unix 时间戳（秒）

    @property
    def short_hash(self) -> str:
        return self.hash[:12]

    def __str__(self) -> str:
        if self.reference:
            return f"{self.reference}@sha1:{self.hash}"
        return f"sha1:{self.hash}"
