"""事务管理模块

提供声明式的事务传播功能：
- 事务传播行为（REQUIRED, REQUIRES_NEW, MANDATORY, NEVER, NOT_SUPPORTED, SUPPORTS）
- 按连接名隔离的环境事务上下文
- 事务事件（提交后 / 回滚后 / 完成后）

使用示例:
    from ydb.orm import tagged_database, TransactionPropagation

    db = tagged_database("default")

    # 方式1：上下文管理器
    async with db.transaction() as tx:
        repo = db.get_repository(User)
        await repo.add(User(username="tom"))

        @db.on_commit
        async def on_committed():
            await send_welcome_email()

    # 方式2：装饰器
    @db.transactional(TransactionPropagation.REQUIRES_NEW)
    async def audit_log(action):
        ...

    # 方式3：包装工作单元
    await db.run(lambda: create_user(data), TransactionPropagation.REQUIRED)
"""

from .state import TransactionState
from .exceptions import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    EventExecutionError,
    PropagationError,
    DatabaseConnectionError,
)
from .propagation import (
    TransactionPropagation,
    PropagationAction,
    decide,
)
from .events import (
    EventCallback,
    TransactionEventType,
    TransactionEvent,
    TransactionEvents,
)
from .context import TransactionContext
from .ambient import (
    TransactionSlot,
    get_transaction_slot,
    get_current_transaction,
)
from .engine import PropagationEngine

__all__ = [
    # 状态
    "TransactionState",

    # 异常
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "TransactionAlreadyRolledBackError",
    "EventExecutionError",
    "PropagationError",
    "DatabaseConnectionError",

    # 传播行为
    "TransactionPropagation",
    "PropagationAction",
    "decide",

    # 事件
    "EventCallback",
    "TransactionEventType",
    "TransactionEvent",
    "TransactionEvents",

    # 上下文
    "TransactionContext",
    "TransactionSlot",
    "get_transaction_slot",
    "get_current_transaction",

    # 引擎
    "PropagationEngine",
]
