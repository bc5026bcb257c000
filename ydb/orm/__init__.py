"""ORM模块

提供声明式事务传播：
- Database: 按连接名隔离的数据库门面
- 事务传播行为（REQUIRED, REQUIRES_NEW, MANDATORY, NEVER, NOT_SUPPORTED, SUPPORTS）
- 事务事件（on_commit / on_rollback / on_complete）
- 数据源: SQLAlchemyDataSource（生产）, MemoryDataSource（测试）
- Repository: 绑定到当前会话的仓储

使用示例:
    from ydb.orm import init_database, TransactionPropagation

    db = init_database("default", url="sqlite+aiosqlite:///./app.db")

    @db.transactional()
    async def create_user(data):
        repo = db.get_repository(User)
        return await repo.add(User(**data))

    @db.transactional(TransactionPropagation.REQUIRES_NEW)
    async def audit_log(action):
        ...
"""

from .transaction import (
    TransactionState,
    TransactionError,
    TransactionNotActiveError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    EventExecutionError,
    PropagationError,
    DatabaseConnectionError,
    TransactionPropagation,
    PropagationAction,
    TransactionEventType,
    TransactionContext,
    PropagationEngine,
    get_current_transaction,
)
from .repository import Repository
from .data_source import (
    DataSource,
    TransactionSession,
    SQLAlchemyDataSource,
    SQLAlchemyTransactionSession,
    create_data_source,
)
from .memory import (
    MemorySession,
    MemoryTransactionSession,
    MemoryDataSource,
)
from .database import (
    Database,
    tagged_database,
    get_database,
    init_database,
    init_test_database,
)

__all__ = [
    # 事务
    "TransactionState",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAlreadyCommittedError",
    "TransactionAlreadyRolledBackError",
    "EventExecutionError",
    "PropagationError",
    "DatabaseConnectionError",
    "TransactionPropagation",
    "PropagationAction",
    "TransactionEventType",
    "TransactionContext",
    "PropagationEngine",
    "get_current_transaction",

    # 仓储
    "Repository",

    # 数据源
    "DataSource",
    "TransactionSession",
    "SQLAlchemyDataSource",
    "SQLAlchemyTransactionSession",
    "create_data_source",
    "MemorySession",
    "MemoryTransactionSession",
    "MemoryDataSource",

    # 门面
    "Database",
    "tagged_database",
    "get_database",
    "init_database",
    "init_test_database",
]
