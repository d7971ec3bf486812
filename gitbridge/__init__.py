"""gitbridge - 基于 GCP 元数据凭据的 Git 仓库检出"""

__version__ = "0.1.0"
