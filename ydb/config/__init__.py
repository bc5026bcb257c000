"""配置模块

提供配置管理功能：
- AppSettings: 应用基础配置，支持 YAML + 环境变量
- 子配置类: DatabaseSettings, TransactionSettings, LoggingSettings
- ConfigLoader: YAML 配置加载器

快速开始:
    from ydb.config import AppSettings, load_yaml_config
    from ydb import init_database

    settings = load_yaml_config("config/settings.yaml", AppSettings)
    db = init_database("default", config=settings.database,
                       transaction_config=settings.transaction)
"""

from .settings import (
    AppSettings,
    DatabaseSettings,
    TransactionSettings,
    LoggingSettings,
)

from .loader import (
    ConfigLoader,
    load_yaml_config,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "TransactionSettings",
    "LoggingSettings",
    "ConfigLoader",
    "load_yaml_config",
]
