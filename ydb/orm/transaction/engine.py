"""事务传播引擎

根据传播行为与当前环境事务决定执行方式，并负责新事务的
开启 / 提交 / 回滚 / 释放流程。
"""

import inspect
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar, Union

from ydb.log import get_logger

from .ambient import TransactionSlot, get_transaction_slot
from .context import TransactionContext
from .exceptions import DatabaseConnectionError, PropagationError
from .propagation import PropagationAction, TransactionPropagation, decide
from .state import TransactionState

logger = get_logger("ydb.orm.transaction")

T = TypeVar('T')

PropagationLike = Union[TransactionPropagation, str]


class PropagationEngine:
    """事务传播引擎

    每个命名连接一个引擎，引擎持有该连接的上下文槽和驱动适配器。

    使用示例:
        engine = PropagationEngine("default", data_source)

        async with engine.transaction(TransactionPropagation.REQUIRES_NEW) as tx:
            await tx.manager.execute(...)

        result = await engine.run(lambda: create_order(data))
    """

    def __init__(
        self,
        name: str,
        data_source,
        default_propagation: PropagationLike = TransactionPropagation.REQUIRED
    ):
        self.name = name
        self.data_source = data_source
        self.default_propagation = TransactionPropagation(default_propagation)
        self._slot: TransactionSlot = get_transaction_slot(name)

    @property
    def slot(self) -> TransactionSlot:
        return self._slot

    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        """当前作用域的事务上下文（可能是非事务上下文）"""
        return self._slot.get()

    def is_in_transaction(self) -> bool:
        """当前作用域是否存在真实的数据库事务"""
        current = self._slot.get()
        return current is not None and current.is_in_transaction

    async def _begin(self) -> TransactionContext:
        try:
            session = await self.data_source.begin()
        except Exception as e:
            logger.critical(f"[{self.name}] 开启事务失败: {e}", exc_info=e)
            raise DatabaseConnectionError(self.name) from e
        return TransactionContext.create_in_transaction(session)

    @asynccontextmanager
    async def transaction(
        self,
        propagation: Optional[PropagationLike] = None
    ) -> AsyncIterator[Optional[TransactionContext]]:
        """按传播行为进入事务作用域

        Args:
            propagation: 传播行为，None 使用引擎默认值

        Yields:
            作用域内的事务上下文；原样执行且外层没有上下文时为 None

        Raises:
            PropagationError: MANDATORY 无事务 / NEVER 有事务
            DatabaseConnectionError: 获取连接或开启事务失败

        使用示例:
            async with engine.transaction() as tx:
                tx.add_event(TransactionEventType.COMMIT, notify)
        """
        if propagation is None:
            propagation = self.default_propagation
        propagation = TransactionPropagation(propagation)

        current = self._slot.get()
        active = current is not None and current.is_in_transaction
        action = decide(propagation, active)
        logger.debug(f"[{self.name}] {propagation.name}: active={active} -> {action.value}")

        if action == PropagationAction.FAIL:
            raise PropagationError(propagation)

        if action == PropagationAction.INLINE:
            yield current
            return

        if action == PropagationAction.ISOLATED:
            session = await self.data_source.acquire()
            manager = session.manager if session is not None else self.data_source.manager
            ctx = TransactionContext.create_not_in_transaction(manager, session=session)
            with self._slot.use(ctx):
                try:
                    yield ctx
                finally:
                    await ctx.release()
            return

        ctx = await self._begin()
        logger.debug(f"[{self.name}] 事务 {ctx.id} 已开启")
        with self._slot.use(ctx):
            try:
                try:
                    yield ctx
                except BaseException as error:
                    await ctx.rollback(error)
                    raise

                try:
                    await ctx.commit()
                except BaseException as error:
                    # 提交失败按工作单元失败处理；提交成功后事件阶段被取消则无需回滚
                    if ctx.state != TransactionState.COMMITTED:
                        await ctx.rollback(error)
                    raise
            finally:
                await ctx.release()

    async def run(
        self,
        unit_of_work: Callable[[], Union[T, Awaitable[T]]],
        propagation: Optional[PropagationLike] = None
    ) -> T:
        """在传播行为控制下执行工作单元

        Args:
            unit_of_work: 无参可调用对象，返回值可以是可等待对象
            propagation: 传播行为，None 使用引擎默认值

        Returns:
            工作单元的返回值
        """
        async with self.transaction(propagation):
            result = unit_of_work()
            if inspect.isawaitable(result):
                result = await result
            return result

    def transactional(self, propagation: Optional[PropagationLike] = None):
        """事务装饰器（仅支持 async 函数）

        使用示例:
            @engine.transactional(TransactionPropagation.REQUIRES_NEW)
            async def audit_log(action):
                ...
        """
        def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
            if not inspect.iscoroutinefunction(func):
                raise TypeError(f"transactional 只能装饰 async 函数: {func!r}")

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                async with self.transaction(propagation):
                    return await func(*args, **kwargs)

            return async_wrapper

        return decorator

    def __repr__(self) -> str:
        return f"PropagationEngine(name={self.name!r}, default={self.default_propagation.name})"
