"""代码仓服务模块

- client.py: git 命令行客户端
- checkout.py: Checkout 执行器
"""

from gitbridge.services.repo.checkout import GitCheckout
from gitbridge.services.repo.client import ClientOptions, GitCliClient, new_client

__all__ = [
    "GitCheckout",
    "GitCliClient",
    "ClientOptions",
    "new_client",
]
