"""事务状态枚举

定义事务上下文的生命周期状态
"""

from enum import Enum


class TransactionState(str, Enum):
    """事务状态

    状态转换图:

        ACTIVE → COMMITTED
           ↓
        FAILED → ROLLED_BACK

    INACTIVE 只属于非事务上下文（NOT_SUPPORTED 挂起时创建），不会发生转换。
    """

    INACTIVE = "inactive"
    """非事务上下文：没有真实的数据库事务"""

    ACTIVE = "active"
    """活跃状态：事务已开始，尚未结束"""

    COMMITTED = "committed"
    """已提交状态"""

    ROLLED_BACK = "rolled_back"
    """已回滚状态"""

    FAILED = "failed"
    """失败状态：提交或回滚过程中数据库报错"""

    def can_commit(self) -> bool:
        return self == TransactionState.ACTIVE
