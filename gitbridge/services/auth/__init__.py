"""认证服务模块

- token.py: 元数据令牌获取
- bridge.py: Token -> Credential -> AuthOptions
- login.py: 登录编排 (GCRClient)
"""

from gitbridge.services.auth.bridge import to_auth_options, to_credential, transport_for_scheme
from gitbridge.services.auth.login import GCRClient
from gitbridge.services.auth.token import MetadataTokenFetcher

__all__ = [
    "GCRClient",
    "MetadataTokenFetcher",
    "to_credential",
    "to_auth_options",
    "transport_for_scheme",
]
