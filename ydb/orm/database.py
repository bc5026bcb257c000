"""
数据库门面模块

每个命名连接对应一个 Database 对象，业务代码通过它声明事务边界、
获取仓储和注册事务事件。

公开 API:
- Database: 数据库门面
- tagged_database(): 获取（不存在时创建）命名连接的门面
- get_database(): 获取命名连接的门面
- init_database(): 绑定生产数据源
- init_test_database(): 绑定内存数据源（测试用）
"""

import inspect
import threading
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar, Union

from ydb.log import get_logger

from .data_source import DataSource, create_data_source
from .memory import MemoryDataSource
from .transaction import (
    EventCallback,
    PropagationEngine,
    TransactionContext,
    TransactionEventType,
    TransactionPropagation,
    get_transaction_slot,
)

_logger = get_logger("ydb.orm.database")

T = TypeVar('T')

PropagationLike = Union[TransactionPropagation, str]

__all__ = [
    'Database',
    'tagged_database',
    'get_database',
    'init_database',
    'init_test_database',
]


class Database:
    """数据库门面

    同名门面共享同一个环境事务槽，不同名的门面互不可见。

    使用示例:
        from ydb.orm import tagged_database, TransactionPropagation

        db = tagged_database("default")
        db.init(SQLAlchemyDataSource.from_url("sqlite+aiosqlite:///./app.db"))

        async with db.transaction():
            repo = db.get_repository(User)
            await repo.add(User(username="tom"))

            @db.on_commit
            async def notify():
                await send_welcome_email()

        @db.transactional(TransactionPropagation.REQUIRES_NEW)
        async def audit_log(action):
            ...
    """

    def __init__(self, name: str = "default"):
        self._name = name
        self._slot = get_transaction_slot(name)
        self._engine: Optional[PropagationEngine] = None

    # ==================== 属性访问 ====================

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> PropagationEngine:
        """传播引擎

        Raises:
            RuntimeError: 数据库未初始化时
        """
        if self._engine is None:
            raise RuntimeError(f"数据库 [{self._name}] 未初始化，请先调用 init_database()")
        return self._engine

    @property
    def data_source(self) -> DataSource:
        return self.engine.data_source

    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        """当前作用域的事务上下文"""
        return self._slot.get()

    @property
    def transaction_id(self) -> Optional[str]:
        """当前事务标识，不在事务中时为 None"""
        current = self._slot.get()
        return current.id if current is not None else None

    @property
    def is_in_transaction(self) -> bool:
        current = self._slot.get()
        return current is not None and current.is_in_transaction

    @property
    def manager(self) -> Any:
        """当前作用域的资源句柄：事务中为事务会话，否则为数据源默认句柄"""
        current = self._slot.get()
        if current is not None:
            return current.manager
        return self.data_source.manager

    def get_repository(self, entity: Type[T]) -> Any:
        """获取绑定到当前资源句柄的仓储"""
        return self.data_source.get_repository(self.manager, entity)

    # ==================== 初始化 ====================

    def init(
        self,
        data_source: DataSource,
        default_propagation: Optional[PropagationLike] = None
    ) -> 'Database':
        """绑定数据源

        Args:
            data_source: 数据源
            default_propagation: 默认传播行为，None 为 REQUIRED
        """
        if self._engine is not None:
            _logger.warning(f"数据库 [{self._name}] 已初始化，重新绑定数据源: {data_source!r}")
        self._engine = PropagationEngine(
            self._name,
            data_source,
            default_propagation or TransactionPropagation.REQUIRED,
        )
        _logger.info(f"数据库 [{self._name}] 初始化完成: {data_source!r}")
        return self

    def init_for_test(self) -> MemoryDataSource:
        """绑定内存数据源，返回数据源以便断言会话生命周期"""
        data_source = MemoryDataSource(self._name)
        self.init(data_source)
        return data_source

    async def dispose(self) -> None:
        """释放数据源并解除绑定"""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.data_source.dispose()
        _logger.info(f"数据库 [{self._name}] 已释放")

    # ==================== 事务 ====================

    def transaction(self, propagation: Optional[PropagationLike] = None):
        """按传播行为进入事务作用域（async with）"""
        return self.engine.transaction(propagation)

    async def run(
        self,
        unit_of_work: Callable[[], Union[T, Awaitable[T]]],
        propagation: Optional[PropagationLike] = None
    ) -> T:
        """在传播行为控制下执行无参工作单元"""
        return await self.engine.run(unit_of_work, propagation)

    async def with_propagation(
        self,
        propagation: PropagationLike,
        unit_of_work: Callable[[], Union[T, Awaitable[T]]]
    ) -> T:
        """按传播行为执行工作单元，传播行为作为第一个参数

        Args:
            propagation: 传播行为（枚举或字符串，如 "requires_new"）
            unit_of_work: 无参可调用对象，返回值可以是可等待对象

        Returns:
            工作单元的返回值

        Raises:
            PropagationError: MANDATORY 无事务 / NEVER 有事务，在修改环境事务之前抛出

        使用示例:
            exists = await db.with_propagation(
                TransactionPropagation.NOT_SUPPORTED,
                lambda: db.is_in_transaction,
            )
        """
        return await self.engine.run(unit_of_work, propagation)

    def transactional(self, propagation: Optional[PropagationLike] = None):
        """事务装饰器（仅支持 async 函数）

        装饰时不要求已初始化，调用时才解析引擎。
        """
        def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            if not inspect.iscoroutinefunction(func):
                raise TypeError(f"transactional 只能装饰 async 函数: {func!r}")

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                async with self.engine.transaction(propagation):
                    return await func(*args, **kwargs)

            return async_wrapper

        return decorator

    # ==================== 事件 ====================

    def _add_event(self, event_type: TransactionEventType, callback: EventCallback) -> EventCallback:
        current = self._slot.get()
        if current is None:
            _logger.debug(f"[{self._name}] 不在事务作用域中，忽略 {event_type.value} 事件: {callback!r}")
            return callback
        return current.add_event(event_type, callback)

    def on_commit(self, callback: EventCallback) -> EventCallback:
        """注册提交后回调 ``callback()``，可作为装饰器使用"""
        return self._add_event(TransactionEventType.COMMIT, callback)

    def on_rollback(self, callback: EventCallback) -> EventCallback:
        """注册回滚后回调 ``callback(error)``"""
        return self._add_event(TransactionEventType.ROLLBACK, callback)

    def on_complete(self, callback: EventCallback) -> EventCallback:
        """注册完成后回调 ``callback(error)``，成功时 error 为 None"""
        return self._add_event(TransactionEventType.COMPLETE, callback)

    def __repr__(self) -> str:
        return f"Database(name={self._name!r}, initialized={self.is_initialized})"


# ==================== 注册表 ====================

_databases: Dict[str, Database] = {}
_databases_lock = threading.Lock()


def tagged_database(name: str = "default") -> Database:
    """获取（不存在时创建）命名连接的门面，同名总是返回同一个对象"""
    db = _databases.get(name)
    if db is None:
        with _databases_lock:
            db = _databases.get(name)
            if db is None:
                db = Database(name)
                _databases[name] = db
    return db


def get_database(name: str = "default") -> Database:
    """获取命名连接的门面

    Raises:
        RuntimeError: 数据库未初始化时
    """
    db = _databases.get(name)
    if db is None or not db.is_initialized:
        raise RuntimeError(f"数据库 [{name}] 未初始化，请先调用 init_database()")
    return db


def init_database(
    name: str = "default",
    url: Optional[str] = None,
    config: Any = None,
    data_source: Optional[DataSource] = None,
    transaction_config: Any = None,
    **kwargs: Any
) -> Database:
    """初始化命名连接

    Args:
        name: 连接名
        url: 数据库连接URL（提供 config 或 data_source 时忽略）
        config: 数据库配置对象（DatabaseSettings）
        data_source: 已创建的数据源，提供后忽略 url 和 config
        transaction_config: 事务配置对象（TransactionSettings），提供默认传播行为
        **kwargs: 传给 SQLAlchemyDataSource.from_url 的引擎参数

    使用示例:
        # 方式1：URL
        db = init_database("default", url="sqlite+aiosqlite:///./app.db")

        # 方式2：配置对象（推荐）
        db = init_database("reporting", config=settings.get_database_settings("reporting"))
    """
    if data_source is None:
        data_source = create_data_source(url=url, config=config, name=name, **kwargs)
    default_propagation = getattr(transaction_config, "default_propagation", None)
    return tagged_database(name).init(data_source, default_propagation=default_propagation)


def init_test_database(name: str = "default") -> Database:
    """使用内存数据源初始化命名连接（测试用）"""
    db = tagged_database(name)
    db.init_for_test()
    return db
