"""凭据桥接: Token -> Credential -> AuthOptions

纯函数，无网络与文件访问。传输方式由 URL scheme 决定，调用方不可指定。
"""

from __future__ import annotations

from urllib.parse import SplitResult

from gitbridge.core.exceptions import UnsupportedTransportError
from gitbridge.core.models import OAUTH2_USERNAME, AuthOptions, Credential, Token, Transport
from gitbridge.utils.net import host_of, parse_repo_url

_SCHEME_TRANSPORTS: dict[str, Transport] = {
    "http": Transport.HTTP,
    "https": Transport.HTTP,
    "ssh": Transport.SSH,
}


def to_credential(token: Token) -> Credential:
    """用户名固定为 oauth2accesstoken，密码为原样的 access_token"""
    return Credential(username=OAUTH2_USERNAME, password=token.access_token)


def transport_for_scheme(scheme: str) -> Transport:
    try:
        return _SCHEME_TRANSPORTS[scheme]
    except KeyError:
        raise UnsupportedTransportError(scheme) from None


def to_auth_options(
    credential: Credential,
    target_url: str | SplitResult,
    *,
    identity: bytes = b"",
    known_hosts: bytes = b"",
    ca_file: bytes = b"",
) -> AuthOptions:
    """按目标 URL 构造认证参数

    Raises:
        MalformedURLError: URL 无法解析或缺少主机名
        UnsupportedTransportError: scheme 不是 http/https/ssh
    """
    parsed = parse_repo_url(target_url)
    transport = transport_for_scheme(parsed.scheme)
    opts = AuthOptions(
        transport=transport,
        host=host_of(parsed),
        username=credential.username.encode("utf-8"),
        password=credential.password.encode("utf-8"),
        identity=identity,
        known_hosts=known_hosts,
        ca_file=ca_file,
        insecure_http=parsed.scheme == "http",
    )
    opts.validate()
    return opts
