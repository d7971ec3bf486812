"""元数据令牌获取

向 GCP 元数据服务发起一次 GET 请求获取访问令牌。
运行在 GCP 上（含 Workload Identity 集群）的进程无需任何长期密钥即可获得令牌。

资源约定: 无论成功、状态异常还是解码失败，响应体都会被读尽并关闭；
上下文已取消或超时时只关闭不读尽。
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import urllib.error
import urllib.request
from typing import Any, Protocol

from gitbridge.core.config import DEFAULT_TOKEN_URL
from gitbridge.core.context import CallContext
from gitbridge.core.exceptions import (
    DeadlineExceededError,
    TokenDecodeError,
    TransportError,
    UnexpectedStatusError,
)
from gitbridge.core.models import Token
from gitbridge.utils.net import validate_url_scheme

logger = logging.getLogger(__name__)

STAGE = "metadata"

METADATA_FLAVOR_HEADER = "Metadata-Flavor"
METADATA_FLAVOR = "Google"

# 令牌响应体上限 (1MB)
MAX_TOKEN_BODY = 1024 * 1024

_DRAIN_CHUNK = 64 * 1024

# 调用线程轮询上下文的间隔（秒）
POLL_INTERVAL = 0.05


class Opener(Protocol):
    """urllib OpenerDirector 的最小接口，测试时注入假实现"""

    def open(self, fullurl: Any, data: Any = None, timeout: float = ...) -> Any:
        ...


def _default_opener() -> urllib.request.OpenerDirector:
    # 元数据服务只在本机网络可达，不走代理
    return urllib.request.build_opener(urllib.request.ProxyHandler({}))


def _release(resp: Any, ctx: CallContext | None = None) -> None:
    """读尽剩余响应体（最多 MAX_TOKEN_BODY 字节）并关闭连接；上下文结束时直接关闭"""
    try:
        if ctx is None or not ctx.done():
            drained = 0
            while drained <= MAX_TOKEN_BODY:
                chunk = resp.read(_DRAIN_CHUNK)
                if not chunk:
                    break
                drained += len(chunk)
    except OSError as e:
        logger.debug("读尽元数据响应体失败: %s", e)
    finally:
        resp.close()


def _read_body(resp: Any, ctx: CallContext) -> bytes:
    """分块读取响应体，每块之前检查上下文，超过 MAX_TOKEN_BODY 即失败"""
    # read1 返回已到达的数据，不等凑满整块
    read = getattr(resp, "read1", None) or resp.read
    chunks: list[bytes] = []
    size = 0
    while True:
        ctx.raise_if_done(STAGE)
        try:
            chunk = read(_DRAIN_CHUNK)
        except OSError as e:
            ctx.raise_if_done(STAGE)
            if _is_timeout(e):
                raise DeadlineExceededError("读取元数据响应超时", stage=STAGE) from e
            raise TransportError(f"读取元数据响应失败: {e}", stage=STAGE) from e
        if not chunk:
            return b"".join(chunks)
        size += len(chunk)
        if size > MAX_TOKEN_BODY:
            raise TokenDecodeError(f"令牌响应体过大，超过限制 {MAX_TOKEN_BODY} 字节", stage=STAGE)
        chunks.append(chunk)


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, urllib.error.URLError):
        exc = exc.reason if isinstance(exc.reason, BaseException) else exc
    return isinstance(exc, (socket.timeout, TimeoutError))


def decode_token(body: bytes) -> Token:
    """解析 {access_token, expires_in, token_type} 结构

    缺失字段按零值处理；类型不符或不是 JSON 对象时抛 TokenDecodeError。
    """
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise TokenDecodeError(f"令牌响应不是合法 JSON: {e.__class__.__name__}", stage=STAGE) from e
    if not isinstance(payload, dict):
        raise TokenDecodeError(
            f"令牌响应必须是 JSON 对象 (实际类型: {type(payload).__name__})", stage=STAGE,
        )

    access_token = payload.get("access_token", "")
    expires_in = payload.get("expires_in", 0)
    token_type = payload.get("token_type", "")
    if not isinstance(access_token, str):
        raise TokenDecodeError("access_token 必须是字符串", stage=STAGE)
    if not isinstance(expires_in, int) or isinstance(expires_in, bool):
        raise TokenDecodeError("expires_in 必须是整数", stage=STAGE)
    if not isinstance(token_type, str):
        raise TokenDecodeError("token_type 必须是字符串", stage=STAGE)
    return Token(access_token=access_token, expires_in=expires_in, token_type=token_type)


class MetadataTokenFetcher:
    """元数据服务令牌获取器

    token_url 只在构造时指定，默认 GCP 元数据端点。不做重试，调用方可自行包装。

    请求在后台线程中执行，调用线程按 poll_interval 轮询上下文；
    取消或超时后立即返回，后台线程在下一次读取时放弃并关闭连接。
    """

    def __init__(
        self,
        token_url: str = DEFAULT_TOKEN_URL,
        *,
        opener: Opener | None = None,
        timeout: float = 30.0,
        poll_interval: float = POLL_INTERVAL,
    ) -> None:
        validate_url_scheme(token_url, context="metadata token url")
        self.token_url = token_url
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._opener = opener or _default_opener()

    def fetch_token(self, ctx: CallContext) -> Token:
        """获取一次访问令牌

        Raises:
            OperationCanceledError / DeadlineExceededError: 上下文已取消或超时
            UnexpectedStatusError: HTTP 状态不是 200
            TokenDecodeError: 响应体结构不符
            TransportError: 网络失败
        """
        ctx.raise_if_done(STAGE)

        outcome: dict[str, Any] = {}
        finished = threading.Event()

        def worker() -> None:
            try:
                outcome["token"] = self._round_trip(ctx)
            except Exception as e:  # 交给调用线程重新抛出
                outcome["error"] = e
            finally:
                finished.set()

        threading.Thread(target=worker, name="metadata-token", daemon=True).start()
        while not finished.wait(self.poll_interval):
            if ctx.done():
                logger.warning("放弃元数据请求: 上下文取消或超时", extra={"stage": STAGE})
                ctx.raise_if_done(STAGE)

        if "error" in outcome:
            raise outcome["error"]
        token = outcome["token"]
        ctx.raise_if_done(STAGE)
        logger.debug("已获取元数据令牌: type=%s expires_in=%ss", token.token_type, token.expires_in)
        return token

    def _round_trip(self, ctx: CallContext) -> Token:
        req = urllib.request.Request(self.token_url, method="GET")
        req.add_header(METADATA_FLAVOR_HEADER, METADATA_FLAVOR)

        try:
            resp = self._opener.open(req, timeout=ctx.remaining(default=self.timeout))
        except urllib.error.HTTPError as e:
            _release(e, ctx)
            raise UnexpectedStatusError(e.code, str(e.reason or ""), stage=STAGE) from e
        except (urllib.error.URLError, OSError) as e:
            ctx.raise_if_done(STAGE)
            if _is_timeout(e):
                raise DeadlineExceededError("请求元数据服务超时", stage=STAGE) from e
            raise TransportError(f"请求元数据服务失败: {e}", stage=STAGE) from e

        try:
            status = getattr(resp, "status", None) or resp.getcode()
            if status != 200:
                raise UnexpectedStatusError(status, getattr(resp, "reason", "") or "", stage=STAGE)
            body = _read_body(resp, ctx)
            ctx.raise_if_done(STAGE)
            return decode_token(body)
        finally:
            _release(resp, ctx)
