"""
ydb - 声明式事务传播库

提供按连接名隔离的环境事务、事务传播行为、事务事件、配置和日志等基础功能
"""

from .version import __version__, __author__, __description__

# 导出ORM
from .orm import (
    Database,
    tagged_database,
    get_database,
    init_database,
    init_test_database,
    Repository,
    SQLAlchemyDataSource,
    MemoryDataSource,
    TransactionPropagation,
    TransactionEventType,
    TransactionContext,
    PropagationError,
    DatabaseConnectionError,
)

# 导出配置
from .config import (
    AppSettings,
    DatabaseSettings,
    TransactionSettings,
    LoggingSettings,
    load_yaml_config,
)

# 导出日志
from .log import get_logger, setup_logger, setup_root_logger

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    # ORM
    "Database",
    "tagged_database",
    "get_database",
    "init_database",
    "init_test_database",
    "Repository",
    "SQLAlchemyDataSource",
    "MemoryDataSource",
    "TransactionPropagation",
    "TransactionEventType",
    "TransactionContext",
    "PropagationError",
    "DatabaseConnectionError",
    # 配置
    "AppSettings",
    "DatabaseSettings",
    "TransactionSettings",
    "LoggingSettings",
    "load_yaml_config",
    # 日志
    "get_logger",
    "setup_logger",
    "setup_root_logger",
]
