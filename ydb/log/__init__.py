"""日志模块

提供日志配置与获取：
- setup_logger / setup_root_logger: 配置处理器与格式
- get_logger: 获取带 ydb 前缀的日志记录器

使用示例:
    from ydb.log import setup_root_logger, get_logger

    setup_root_logger(level="DEBUG")
    logger = get_logger("ydb.orm.transaction")
"""

from .logger import (
    setup_logger,
    setup_root_logger,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    transaction_logger,
    logger,
    get_logger,
)

__all__ = [
    "setup_logger",
    "setup_root_logger",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "transaction_logger",
    "logger",
    "get_logger",
]
