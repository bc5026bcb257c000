"""
数据源（驱动适配器）模块

传播引擎只通过 DataSource / TransactionSession 两个接口访问数据库，
生产环境使用 SQLAlchemyDataSource（异步引擎），测试使用 MemoryDataSource。

公开 API:
- DataSource: 数据源抽象基类
- TransactionSession: 已开启事务的会话句柄
- SQLAlchemyDataSource: 基于 SQLAlchemy AsyncEngine 的数据源
"""

import asyncio
import os
from abc import ABC, abstractmethod
from typing import Any, Optional, Set, Type

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_scoped_session,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ydb.log import get_logger

from .repository import Repository

_logger = get_logger("ydb.orm.session")

__all__ = [
    'DataSource',
    'TransactionSession',
    'SQLAlchemyDataSource',
    'SQLAlchemyTransactionSession',
]


class TransactionSession(ABC):
    """已开启事务的会话句柄

    由 DataSource.begin() / acquire() 返回，事务上下文通过它提交、回滚和释放。
    """

    @property
    @abstractmethod
    def manager(self) -> Any:
        """事务内执行查询使用的资源句柄"""

    @abstractmethod
    async def commit(self) -> None:
        ...

    @abstractmethod
    async def rollback(self) -> None:
        ...

    @abstractmethod
    async def release(self) -> None:
        """归还会话（连接）给驱动"""


class DataSource(ABC):
    """数据源抽象基类"""

    @property
    @abstractmethod
    def manager(self) -> Any:
        """非事务场景使用的默认资源句柄"""

    @abstractmethod
    async def begin(self) -> TransactionSession:
        """获取会话并开启事务

        Raises:
            Exception: 获取连接或开启事务失败（引擎会转换为 DatabaseConnectionError）
        """

    async def acquire(self) -> Optional[TransactionSession]:
        """获取非事务作用域（NOT_SUPPORTED）使用的会话

        会话以自动提交方式执行，作用域结束时由引擎调用 release()。
        返回 None 表示直接使用 manager，无需释放。
        """
        return None

    @abstractmethod
    def get_repository(self, manager: Any, entity: Type) -> Any:
        """获取绑定到指定资源句柄的仓储"""

    async def dispose(self) -> None:
        """释放数据源持有的资源"""


class SQLAlchemyTransactionSession(TransactionSession):
    """AsyncSession 的会话句柄（事务会话与非事务作用域的自动提交会话共用）"""

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def manager(self) -> AsyncSession:
        return self._session

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def release(self) -> None:
        await self._session.close()


class SQLAlchemyDataSource(DataSource):
    """基于 SQLAlchemy AsyncEngine 的数据源

    - 每个新事务从 async_sessionmaker 创建独立的 AsyncSession
    - 非事务场景使用 AUTOCOMMIT 隔离级别的会话，写入在 flush 时立即生效
    - 默认资源句柄是按当前 asyncio 任务隔离的 async_scoped_session，
      任务结束时自动关闭并归还连接
    - NOT_SUPPORTED 作用域通过 acquire() 获取独立的自动提交会话，作用域结束即关闭

    使用示例:
        from ydb.orm import SQLAlchemyDataSource

        # 方式1：传入已创建的引擎
        data_source = SQLAlchemyDataSource(engine)

        # 方式2：URL
        data_source = SQLAlchemyDataSource.from_url("sqlite+aiosqlite:///./app.db")

        # 方式3：配置对象（推荐）
        data_source = SQLAlchemyDataSource.from_settings(settings.database)
    """

    def __init__(self, engine: AsyncEngine, name: str = "default"):
        self.name = name
        self._engine = engine
        # expire_on_commit=False：异步模式下提交后访问属性不能触发隐式 IO
        self._session_maker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            autoflush=True,
            expire_on_commit=False,
        )
        # 与事务会话共用连接池，连接归还时隔离级别自动复位
        self._autocommit_maker = async_sessionmaker(
            bind=engine.execution_options(isolation_level="AUTOCOMMIT"),
            class_=AsyncSession,
            autoflush=True,
            expire_on_commit=False,
        )
        self._session_scope = async_scoped_session(
            self._autocommit_maker,
            scopefunc=self._task_scope,
        )
        self._scoped_tasks: Set[asyncio.Task] = set()
        self._closing: Set[asyncio.Task] = set()

    def _task_scope(self) -> Optional[asyncio.Task]:
        """默认会话的作用域：当前任务，首次访问时登记任务结束回调"""
        task = asyncio.current_task()
        if task is not None and task not in self._scoped_tasks:
            self._scoped_tasks.add(task)
            task.add_done_callback(self._close_task_session)
        return task

    def _close_task_session(self, task: asyncio.Task) -> None:
        self._scoped_tasks.discard(task)
        session = self._session_scope.registry.registry.pop(task, None)
        if session is None:
            return
        closing = task.get_loop().create_task(self._close_session(session))
        self._closing.add(closing)
        closing.add_done_callback(self._closing.discard)

    async def _close_session(self, session: AsyncSession) -> None:
        try:
            await session.close()
        except Exception as e:
            _logger.warning(f"[{self.name}] 关闭任务默认会话失败: {e}")

    @classmethod
    def from_url(
        cls,
        url: str,
        name: str = "default",
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 3600,
        pool_pre_ping: bool = True,
    ) -> 'SQLAlchemyDataSource':
        """根据连接 URL 创建数据源

        Args:
            url: 数据库连接URL，需要异步驱动（如 sqlite+aiosqlite）
            name: 连接名，仅用于日志
        """
        if not url:
            raise ValueError("url 是必需的，请通过参数或 config 提供")

        _logger.info(f"[{name}] 数据库配置URL: {url}")
        parsed = make_url(url)

        try:
            if parsed.get_backend_name() == "sqlite":
                db_path = parsed.database or ""
                if db_path in ("", ":memory:"):
                    # 内存数据库：使用 StaticPool（单连接）
                    engine = create_async_engine(url, echo=echo, poolclass=StaticPool)
                    _logger.info(f"[{name}] SQLite内存数据库引擎创建成功（StaticPool）")
                else:
                    _logger.info(f"[{name}] SQLite文件数据库路径: {os.path.abspath(db_path)}")
                    engine = create_async_engine(
                        url,
                        echo=echo,
                        connect_args={"timeout": pool_timeout},
                    )
                    _logger.info(f"[{name}] SQLite文件数据库引擎创建成功")
            else:
                engine = create_async_engine(
                    url,
                    echo=echo,
                    pool_pre_ping=pool_pre_ping,
                    pool_size=pool_size,
                    max_overflow=max_overflow,
                    pool_timeout=pool_timeout,
                    pool_recycle=pool_recycle,
                )
                _logger.info(f"[{name}] 数据库引擎创建成功")
        except Exception as e:
            _logger.error(f"[{name}] 创建数据库引擎失败: {str(e)}")
            raise

        return cls(engine, name=name)

    @classmethod
    def from_settings(cls, config: Any, name: str = "default") -> 'SQLAlchemyDataSource':
        """根据配置对象（DatabaseSettings 或任何带同名属性的对象）创建数据源"""
        return cls.from_url(
            getattr(config, "url", ""),
            name=name,
            echo=getattr(config, "echo", False),
            pool_size=getattr(config, "pool_size", 5),
            max_overflow=getattr(config, "max_overflow", 10),
            pool_timeout=getattr(config, "pool_timeout", 30),
            pool_recycle=getattr(config, "pool_recycle", 3600),
            pool_pre_ping=getattr(config, "pool_pre_ping", True),
        )

    # ==================== 属性访问 ====================

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker:
        return self._session_maker

    @property
    def manager(self) -> async_scoped_session:
        """非事务场景的默认会话（自动提交，按 asyncio 任务隔离，任务结束时关闭）"""
        return self._session_scope

    # ==================== 核心方法 ====================

    async def begin(self) -> SQLAlchemyTransactionSession:
        session: AsyncSession = self._session_maker()
        try:
            await session.begin()
            # 立即获取连接，连接失败在开启事务时暴露
            await session.connection()
        except BaseException:
            await session.close()
            raise
        return SQLAlchemyTransactionSession(session)

    async def acquire(self) -> SQLAlchemyTransactionSession:
        """为非事务作用域创建独立的自动提交会话"""
        return SQLAlchemyTransactionSession(self._autocommit_maker())

    def get_repository(self, manager: Any, entity: Type) -> Repository:
        return Repository(entity, manager)

    async def cleanup(self) -> None:
        """关闭当前任务的默认会话，并等待已结束任务的默认会话关闭完成"""
        await self._session_scope.remove()
        if self._closing:
            await asyncio.gather(*list(self._closing))

    async def dispose(self) -> None:
        await self.cleanup()
        await self._engine.dispose()
        _logger.info(f"[{self.name}] 数据库引擎已释放")

    def __repr__(self) -> str:
        return f"SQLAlchemyDataSource(name={self.name!r}, url={self._engine.url!r})"


def create_data_source(
    url: Optional[str] = None,
    config: Any = None,
    name: str = "default",
    **kwargs: Any
) -> SQLAlchemyDataSource:
    """根据 URL 或配置对象创建 SQLAlchemy 数据源（提供 config 时忽略 url）"""
    if config is not None:
        return SQLAlchemyDataSource.from_settings(config, name=name)
    return SQLAlchemyDataSource.from_url(url, name=name, **kwargs)
