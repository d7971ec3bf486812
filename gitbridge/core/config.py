"""集中配置管理

元数据端点、超时、自动登录开关等统一从 Config 读取。
支持从 YAML 文件加载 + 编程式覆盖；各组件在构造时接收配置，运行期不修改。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from gitbridge.core.exceptions import ConfigError
from gitbridge.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_URL = (
    "http://metadata.google.internal/computeMetadata/v1/instance/service-accounts/default/token"
)


@dataclass
class Config:
    """全局配置"""

    # 元数据服务
    token_url: str = DEFAULT_TOKEN_URL
    metadata_timeout: float = 30.0

    # 登录
    auto_login: bool = False
    allow_empty_token: bool = False
    require_eligible_host: bool = False

    # 检出
    checkout_timeout: float = 180.0
    git_binary: str = "git"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("metadata_timeout", "checkout_timeout"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{name} 必须为正数: {value!r}")
        # YAML 中的 "false" 是非空字符串，按真值处理会误开开关
        for name in ("auto_login", "allow_empty_token", "require_eligible_host"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigError(f"{name} 必须为布尔值 (true/false): {value!r}")
        for name in ("token_url", "git_binary"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"{name} 必须为非空字符串: {value!r}")

    @classmethod
    def from_file(cls, path: str = "configs/gitbridge.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/gitbridge.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
