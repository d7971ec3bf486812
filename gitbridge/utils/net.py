"""网络工具 — 主机资格判断与 URL 校验"""

from __future__ import annotations

from urllib.parse import SplitResult, urlsplit

from gitbridge.core.exceptions import MalformedURLError, ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))

GCR_HOST = "gcr.io"
GCR_DOMAIN_SUFFIX = ".gcr.io"
ARTIFACT_REGISTRY_SUFFIX = "-docker.pkg.dev"


def valid_host(host: str) -> bool:
    """判断主机是否为 GCR / Artifact Registry 主机

    大小写敏感，不做归一化。
    """
    return (
        host == GCR_HOST
        or host.endswith(GCR_DOMAIN_SUFFIX)
        or host.endswith(ARTIFACT_REGISTRY_SUFFIX)
    )


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    scheme = urlsplit(url).scheme
    if scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(f"不允许的 URL 协议 '{scheme}'{label}，仅支持 http/https")


def host_of(parsed: SplitResult) -> str:
    """取 URL 的主机名，保留原始大小写（SplitResult.hostname 会转小写）"""
    hostport = parsed.netloc.rpartition("@")[2]
    if hostport.startswith("["):
        return hostport[1:].partition("]")[0]
    return hostport.partition(":")[0]


def parse_repo_url(url: str | SplitResult) -> SplitResult:
    """解析仓库 URL，要求同时具备 scheme 与主机名

    Raises:
        MalformedURLError: 无法解析，或缺少 scheme / 主机名
    """
    if isinstance(url, SplitResult):
        parsed = url
    else:
        try:
            parsed = urlsplit(url)
            # 端口非法时 urlsplit 不报错，访问 port 才会触发 ValueError
            parsed.port  # noqa: B018
        except ValueError as e:
            raise MalformedURLError(f"无法解析仓库 URL: {e}", stage="auth") from e
    if not parsed.scheme or not parsed.hostname:
        raise MalformedURLError("仓库 URL 缺少 scheme 或主机名", stage="auth")
    return parsed
