"""版本信息"""

__version__ = "0.1.0"
__author__ = "ydb"
__description__ = "基于 SQLAlchemy 异步引擎的声明式事务传播库"
