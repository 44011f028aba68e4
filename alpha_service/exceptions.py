"""
异常体系
上游失败统一为带类型标签的 ProviderError，降级逻辑只依据 kind 分支，不做字符串匹配。
"""

from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    ACCESS_DENIED = "access_denied"   # 403：套餐/权限不足，可切换备用数据源
    HTTP = "http"                     # 其他非 2xx 状态（含重试耗尽）
    MALFORMED = "malformed"           # 响应无法解析
    NETWORK = "network"               # 连接 / 超时


class AlphaServiceError(Exception):
    """服务内所有业务异常的基类"""


class ProviderError(AlphaServiceError):
    """上游数据提供商调用失败"""

    def __init__(
        self,
        kind: FailureKind,
        source: str,
        message: str,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.source = source
        self.status = status

    @property
    def access_denied(self) -> bool:
        return self.kind is FailureKind.ACCESS_DENIED

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, source={self.source!r}, status={self.status})"


class MissingCredentialError(AlphaServiceError):
    """缺少主数据源 API 凭证，属于配置错误，不参与降级"""


class InsufficientDataError(AlphaServiceError):
    """有效标的或重叠观测数不足，按客户端错误处理"""
