"""统一异常体系

所有业务异常继承 GitBridgeError，按阶段（stage）区分出错位置：
metadata（令牌获取）、login（凭据转换）、auth（认证参数）、checkout（检出）。
CLI 层据此输出 code + 消息；消息中不得包含任何凭据原文。
"""

from __future__ import annotations


class GitBridgeError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str, *, stage: str = "") -> None:
        super().__init__(message)
        self.stage = stage

    def __str__(self) -> str:
        msg = super().__str__()
        return f"[{self.stage}] {msg}" if self.stage else msg


class ConfigError(GitBridgeError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(GitBridgeError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"


class MalformedURLError(ValidationError):
    """仓库 URL 无法解析或缺少主机名"""

    code = "MALFORMED_URL"


class UnsupportedTransportError(ValidationError):
    """URL scheme 没有对应的传输方式"""

    code = "UNSUPPORTED_TRANSPORT"

    def __init__(self, scheme: str, *, stage: str = "auth") -> None:
        super().__init__(f"不支持的传输协议: '{scheme}'", stage=stage)
        self.scheme = scheme


class IneligibleHostError(ValidationError):
    """目标主机不接受此类凭据"""

    code = "INELIGIBLE_HOST"


class ProviderUnconfiguredError(GitBridgeError):
    """未开启自动登录，不允许访问元数据服务"""

    code = "PROVIDER_UNCONFIGURED"


class TransportError(GitBridgeError):
    """网络层失败（元数据服务或远端仓库不可达）"""

    code = "TRANSPORT_ERROR"


class UnexpectedStatusError(GitBridgeError):
    """元数据服务返回非 200 状态"""

    code = "UNEXPECTED_STATUS"

    def __init__(self, status: int, reason: str = "", *, stage: str = "metadata") -> None:
        self.status = status
        self.reason = reason
        status_text = f"{status} {reason}".strip()
        super().__init__(f"元数据服务返回异常状态: {status_text}", stage=stage)

    @property
    def status_text(self) -> str:
        return f"{self.status} {self.reason}".strip()


class TokenDecodeError(GitBridgeError):
    """令牌响应体不是预期的 JSON 结构"""

    code = "DECODE_ERROR"


class EmptyCredentialError(GitBridgeError):
    """元数据服务返回了空的 access_token"""

    code = "EMPTY_CREDENTIAL"


class OperationCanceledError(GitBridgeError):
    """调用上下文已取消"""

    code = "CANCELED"


class DeadlineExceededError(OperationCanceledError):
    """调用上下文已超时"""

    code = "DEADLINE_EXCEEDED"


class AuthRejectedError(GitBridgeError):
    """远端仓库拒绝了凭据"""

    code = "AUTH_REJECTED"


class CheckoutError(GitBridgeError):
    """其余检出失败（含磁盘/IO 错误）"""

    code = "CHECKOUT_FAILED"
