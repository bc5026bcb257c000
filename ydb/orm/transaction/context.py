"""事务上下文

一个事务上下文对应一个工作单元的作用域
"""

from __future__ import annotations

from typing import Any, List, Optional, TYPE_CHECKING
from uuid import uuid4

from ydb.log import get_logger

from .state import TransactionState
from .events import EventCallback, TransactionEvents, TransactionEventType
from .exceptions import (
    EventExecutionError,
    TransactionAlreadyCommittedError,
    TransactionAlreadyRolledBackError,
    TransactionNotActiveError,
)

if TYPE_CHECKING:
    from ..data_source import TransactionSession

logger = get_logger("ydb.orm.transaction")


class TransactionContext:
    """事务上下文

    管理单个工作单元的生命周期，包括：
    - 事务标识（只有真实数据库事务才有 id）
    - 查询使用的资源句柄（manager）
    - 提交 / 回滚 / 完成事件

    通常由 PropagationEngine 创建，业务代码通过 Database 门面访问:

        async with db.transaction() as tx:
            repo = db.get_repository(User)
            await repo.add(User(name="tom"))

            @db.on_commit
            async def notify():
                await send_welcome_email()
    """

    def __init__(
        self,
        manager: Any,
        id: Optional[str] = None,
        session: Optional['TransactionSession'] = None
    ):
        """初始化事务上下文

        Args:
            manager: 执行查询的资源句柄
            id: 事务标识，None 表示非事务上下文
            session: 驱动返回的事务会话句柄，负责提交 / 回滚 / 释放
        """
        self._manager = manager
        self._id = id
        self._session = session
        self._events = TransactionEvents()
        self._state = TransactionState.ACTIVE if id is not None else TransactionState.INACTIVE
        self._released = False

    @classmethod
    def create_in_transaction(cls, session: 'TransactionSession') -> 'TransactionContext':
        """基于已开启事务的会话创建上下文，并生成新的事务标识"""
        return cls(session.manager, id=str(uuid4()), session=session)

    @classmethod
    def create_not_in_transaction(
        cls,
        manager: Any,
        session: Optional['TransactionSession'] = None
    ) -> 'TransactionContext':
        """创建非事务上下文（用于挂起外层事务）

        session 为数据源提供的自动提交会话，只在 release() 时归还，不参与提交 / 回滚。
        """
        return cls(manager, session=session)

    # ==================== 属性 ====================

    @property
    def id(self) -> Optional[str]:
        """事务标识，非事务上下文为 None"""
        return self._id

    @property
    def manager(self) -> Any:
        """执行查询的资源句柄"""
        return self._manager

    @property
    def session(self) -> Optional['TransactionSession']:
        return self._session

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def events(self) -> TransactionEvents:
        return self._events

    @property
    def is_in_transaction(self) -> bool:
        """是否持有真实的数据库事务"""
        return self._id is not None

    is_active = is_in_transaction

    @property
    def is_released(self) -> bool:
        return self._released

    # ==================== 生命周期 ====================

    async def commit(self) -> None:
        """提交事务，随后依次执行 COMMIT 与 COMPLETE 事件

        非事务上下文不访问数据库，只执行事件。
        事件回调失败只记录日志，不影响已提交的事务。
        """
        if self.is_in_transaction:
            if self._state == TransactionState.COMMITTED:
                raise TransactionAlreadyCommittedError()
            if self._state == TransactionState.ROLLED_BACK:
                raise TransactionAlreadyRolledBackError()
            if not self._state.can_commit():
                raise TransactionNotActiveError(f"无法提交：事务状态为 {self._state.value}")

            try:
                await self._session.commit()
            except Exception:
                self._state = TransactionState.FAILED
                raise
            self._state = TransactionState.COMMITTED
            logger.debug(f"事务 {self._id} 提交成功")

        errors = await self.run_events(TransactionEventType.COMMIT)
        errors += await self.run_events(TransactionEventType.COMPLETE)
        if errors:
            logger.warning(f"事务 {self._id} 有 {len(errors)} 个提交后事件回调执行失败")

    async def rollback(self, error: BaseException) -> None:
        """回滚事务，随后依次执行 ROLLBACK 与 COMPLETE 事件

        回滚本身失败时只记录日志（带堆栈），调用方仍然拿到原始异常。
        回滚 / 完成事件回调被取消时同样只记录日志，不会替换原始异常。

        Args:
            error: 触发回滚的原始异常，会传给事件回调
        """
        if self.is_in_transaction:
            if self._state == TransactionState.COMMITTED:
                raise TransactionAlreadyCommittedError("无法回滚：事务已提交")
            if self._state == TransactionState.ROLLED_BACK:
                return

            try:
                await self._session.rollback()
                self._state = TransactionState.ROLLED_BACK
                logger.debug(f"事务 {self._id} 已回滚: {type(error).__name__}")
            except Exception as rollback_error:
                self._state = TransactionState.FAILED
                logger.error(
                    f"事务 {self._id} 回滚失败: {rollback_error}（原始异常: {error!r}）",
                    exc_info=rollback_error
                )

        errors = await self._run_rollback_events(TransactionEventType.ROLLBACK, error)
        errors += await self._run_rollback_events(TransactionEventType.COMPLETE, error)
        if errors:
            logger.warning(f"事务 {self._id} 有 {len(errors)} 个回滚后事件回调执行失败")

    async def _run_rollback_events(
        self,
        event_type: TransactionEventType,
        error: BaseException
    ) -> List[EventExecutionError]:
        # 调用方随后重新抛出原始异常，回调中的取消等中断只记录，不能替换它
        try:
            return await self.run_events(event_type, error)
        except BaseException as interrupted:
            logger.error(
                f"事务 {self._id} 的 {event_type.value} 事件回调被中断: {interrupted!r}"
                f"（原始异常: {error!r}）"
            )
            return []

    async def release(self) -> None:
        """释放会话并清空事件（幂等，多次调用安全）"""
        if self._released:
            return
        self._released = True

        try:
            if self._session is not None:
                await self._session.release()
                logger.debug(f"事务 {self._id} 会话已释放")
        except Exception as e:
            logger.error(f"事务 {self._id} 会话释放失败: {e}", exc_info=e)
        finally:
            self._events.clear()

    # ==================== 事件 ====================

    def add_event(self, event_type: TransactionEventType, callback: EventCallback) -> EventCallback:
        """注册事件回调"""
        return self._events.register(event_type, callback)

    async def run_events(
        self,
        event_type: TransactionEventType,
        error: Optional[BaseException] = None
    ) -> List[EventExecutionError]:
        """执行指定类型的事件回调"""
        return await self._events.run(event_type, error)

    def __repr__(self) -> str:
        return (
            f"TransactionContext("
            f"id={self._id!r}, "
            f"state={self._state.value}, "
            f"events={len(self._events)})"
        )
