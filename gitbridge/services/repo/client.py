"""Git 客户端 — 基于 git 命令行的 clone 实现

职责：
- 按 AuthOptions 组织传给 git 的认证材料（HTTP 头 / SSH 私钥 / CA 证书）
- 执行 clone 并读取检出的提交信息
- 按 stderr 区分认证失败 / 网络失败 / 其余失败

凭据只经由环境变量和私有临时目录传给 git，不出现在命令行参数与错误消息中。
私有临时目录由 close() 删除，客户端实例只服务一次 clone。
"""

from __future__ import annotations

import base64
import logging
import os
import shlex
import shutil
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlsplit

from gitbridge.core.context import CallContext
from gitbridge.core.exceptions import AuthRejectedError, CheckoutError, TransportError
from gitbridge.core.models import AuthOptions, CloneConfig, CommitInfo, Transport
from gitbridge.utils.shell import CommandExecutor, CommandResult, LocalExecutor

logger = logging.getLogger(__name__)

STAGE = "checkout"

_AUTH_PATTERNS = (
    "Authentication failed",
    "could not read Username",
    "could not read Password",
    "Permission denied",
    "Access denied",
    "Invalid username or password",
    "returned error: 401",
    "returned error: 403",
)

_NETWORK_PATTERNS = (
    "Could not resolve host",
    "Failed to connect",
    "Connection refused",
    "Connection reset",
    "Connection timed out",
    "Operation timed out",
    "Could not read from remote repository",
    "early EOF",
    "RPC failed",
    "unable to access",
)

_ASKPASS_SCRIPT = '#!/bin/sh\nprintf \'%s\\n\' "$GITBRIDGE_SSH_PASSWORD"\n'

# git log 输出字段以 NUL 分隔: hash / 作者 / 提交时间 / 完整消息
_LOG_FORMAT = "%H%x00%an <%ae>%x00%ct%x00%B"


class GitClient(Protocol):
    """检出客户端协议"""

    def clone(self, ctx: CallContext, url: str, config: CloneConfig) -> CommitInfo:
        ...

    def close(self) -> None:
        ...


@dataclass
class ClientOptions:
    """客户端选项"""

    # 仅当目标为 http:// 时才允许通过明文 HTTP 发送凭据
    insecure_credentials_over_http: bool = False
    git_binary: str = "git"


def _redact(text: str, secrets: list[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "***")
    return text


class GitCliClient:
    """git 命令行客户端，作用域为一个目标目录"""

    def __init__(
        self,
        directory: str | Path,
        auth: AuthOptions | None = None,
        options: ClientOptions | None = None,
        *,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.directory = Path(directory)
        self.auth = auth
        self.options = options or ClientOptions()
        self._executor = executor or LocalExecutor()
        self._private_dir: Path | None = None
        self.closed = False

    # ---- 资源管理 ----

    def close(self) -> None:
        """删除私有临时目录（私钥、askpass 脚本等），可重复调用"""
        if self._private_dir is not None:
            try:
                shutil.rmtree(self._private_dir)
            except OSError as e:
                logger.warning("清理认证临时目录失败 %s: %s", self._private_dir, e)
            self._private_dir = None
        self.closed = True

    def __enter__(self) -> GitCliClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _write_private(self, name: str, content: bytes, *, executable: bool = False) -> Path:
        if self._private_dir is None:
            self._private_dir = Path(tempfile.mkdtemp(prefix="gitbridge-auth-"))
        path = self._private_dir / name
        path.write_bytes(content)
        mode = stat.S_IRUSR | stat.S_IWUSR
        if executable:
            mode |= stat.S_IXUSR
        os.chmod(path, mode)
        return path

    # ---- 认证材料 ----

    def _secrets(self) -> list[str]:
        if self.auth is None:
            return []
        values = [self.auth.password, self.auth.bearer_token]
        secrets = [v.decode("utf-8", "replace") for v in values if v]
        secrets.extend(self._basic_header_values())
        return secrets

    def _basic_header_values(self) -> list[str]:
        if self.auth is None or not self.auth.password:
            return []
        raw = self.auth.username + b":" + self.auth.password
        return [base64.b64encode(raw).decode("ascii")]

    def _http_config(self) -> list[tuple[str, str]]:
        auth = self.auth
        if auth is None:
            return []
        entries: list[tuple[str, str]] = []
        if auth.bearer_token:
            entries.append(("http.extraHeader", f"Authorization: Bearer {auth.bearer_token.decode('utf-8')}"))
        elif auth.password:
            entries.append(("http.extraHeader", f"Authorization: Basic {self._basic_header_values()[0]}"))
        if auth.ca_file:
            entries.append(("http.sslCAInfo", str(self._write_private("ca.crt", auth.ca_file))))
        return entries

    def _ssh_command(self, env: dict[str, str]) -> str:
        auth = self.auth
        parts = ["ssh"]
        if auth is not None and auth.identity:
            key = self._write_private("identity", auth.identity)
            parts += ["-i", str(key), "-o", "IdentitiesOnly=yes"]
        if auth is not None and auth.known_hosts:
            hosts = self._write_private("known_hosts", auth.known_hosts)
            parts += ["-o", f"UserKnownHostsFile={hosts}", "-o", "StrictHostKeyChecking=yes"]
        if auth is not None and auth.password and not auth.identity:
            askpass = self._write_private("askpass.sh", _ASKPASS_SCRIPT.encode(), executable=True)
            env["SSH_ASKPASS"] = str(askpass)
            env["SSH_ASKPASS_REQUIRE"] = "force"
            env["GITBRIDGE_SSH_PASSWORD"] = auth.password.decode("utf-8")
        return " ".join(shlex.quote(p) for p in parts)

    def _build_env(self, url: str) -> dict[str, str]:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        config: list[tuple[str, str]] = []
        scheme = urlsplit(url).scheme
        if self.auth is not None and self.auth.transport is Transport.HTTP:
            if scheme == "http" and self._secrets() and not self.options.insecure_credentials_over_http:
                raise CheckoutError("拒绝通过明文 HTTP 发送凭据", stage=STAGE)
            config = self._http_config()
        elif self.auth is not None and self.auth.transport is Transport.SSH:
            env["GIT_SSH_COMMAND"] = self._ssh_command(env)

        env["GIT_CONFIG_COUNT"] = str(len(config))
        for i, (key, value) in enumerate(config):
            env[f"GIT_CONFIG_KEY_{i}"] = key
            env[f"GIT_CONFIG_VALUE_{i}"] = value
        return env

    def _ssh_url(self, url: str) -> str:
        """SSH 地址未带用户名时补上认证参数中的用户名"""
        parsed = urlsplit(url)
        if parsed.scheme != "ssh" or parsed.username or self.auth is None or not self.auth.username:
            return url
        user = self.auth.username.decode("utf-8")
        return parsed._replace(netloc=f"{user}@{parsed.netloc}").geturl()

    # ---- clone ----

    def clone(self, ctx: CallContext, url: str, config: CloneConfig) -> CommitInfo:
        """clone 到 self.directory 并返回检出的提交"""
        if self.closed:
            raise CheckoutError("客户端已关闭", stage=STAGE)
        env = self._build_env(url)
        url = self._ssh_url(url)

        args = [self.options.git_binary, "clone", "--quiet"]
        if config.shallow_clone:
            args += ["--depth", "1", "--single-branch"]
        ref = config.tag or config.branch
        if ref:
            args += ["--branch", ref]
        if config.recurse_submodules:
            args.append("--recurse-submodules")
            if config.shallow_clone:
                args.append("--shallow-submodules")
        args += ["--", url, str(self.directory)]

        try:
            r = self._executor.execute(args, ctx, env=env, stage=STAGE)
        except OSError as e:
            raise CheckoutError(f"无法执行 git: {e}", stage=STAGE) from e
        if not r.success:
            self._raise_for_result(r)

        commit = self._head_commit(ctx, env)
        if config.tag:
            commit.reference = f"refs/tags/{config.tag}"
        logger.info("clone 完成: %s -> %s", commit, self.directory)
        return commit

    def _raise_for_result(self, r: CommandResult) -> None:
        stderr = _redact(r.stderr.strip(), self._secrets())[:500]
        if any(p in stderr for p in _AUTH_PATTERNS):
            raise AuthRejectedError(f"远端拒绝凭据: {stderr}", stage=STAGE)
        if any(p in stderr for p in _NETWORK_PATTERNS):
            raise TransportError(f"无法访问远端仓库: {stderr}", stage=STAGE)
        raise CheckoutError(f"git clone 失败 (rc={r.returncode}): {stderr}", stage=STAGE)

    def _git(self, ctx: CallContext, env: dict[str, str], *args: str) -> CommandResult:
        cmd = [self.options.git_binary, "-C", str(self.directory), *args]
        try:
            return self._executor.execute(cmd, ctx, env=env, stage=STAGE)
        except OSError as e:
            raise CheckoutError(f"无法执行 git: {e}", stage=STAGE) from e

    def _head_commit(self, ctx: CallContext, env: dict[str, str]) -> CommitInfo:
        r = self._git(ctx, env, "log", "-1", f"--format={_LOG_FORMAT}")
        if not r.success:
            raise CheckoutError(f"读取 HEAD 提交失败: {r.stderr.strip()[:300]}", stage=STAGE)
        fields = r.stdout.split("\x00", 3)
        if len(fields) != 4:
            raise CheckoutError("无法解析 git log 输出", stage=STAGE)
        sha, author, committed_at, message = fields
        ref = self._git(ctx, env, "symbolic-ref", "-q", "HEAD")
        return CommitInfo(
            hash=sha.strip(),
            reference=ref.stdout.strip() if ref.success else "",
            author=author,
            message=message.strip(),
            committed_at=int(committed_at) if committed_at.isdigit() else 0,
        )


def new_client(
    directory: str | Path,
    auth: AuthOptions | None,
    options: ClientOptions | None = None,
) -> GitCliClient:
    """默认客户端工厂"""
    return GitCliClient(directory, auth, options)
