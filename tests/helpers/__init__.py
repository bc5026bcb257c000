"""测试辅助工具"""

from .transaction_helpers import (
    reset_databases,
    EventRecorder,
    BusinessError,
)

__all__ = [
    "reset_databases",
    "EventRecorder",
    "BusinessError",
]
