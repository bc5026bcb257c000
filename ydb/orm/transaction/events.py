"""事务事件系统

提供事务结束时的回调机制（提交后 / 回滚后 / 完成后）
"""

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from ydb.log import get_logger

from .exceptions import EventExecutionError

logger = get_logger("ydb.orm.transaction")

EventCallback = Callable[..., Any]


class TransactionEventType(str, Enum):
    """事务事件类型"""

    COMMIT = "commit"
    """提交成功后，回调签名 ``callback()``"""

    ROLLBACK = "rollback"
    """回滚后，回调签名 ``callback(error)``"""

    COMPLETE = "complete"
    """事务结束后（无论成功失败），回调签名 ``callback(error)``，成功时 error 为 None"""


@dataclass(frozen=True)
class TransactionEvent:
    """已注册的事件回调"""

    event_type: TransactionEventType
    callback: EventCallback

    @property
    def name(self) -> str:
        return getattr(self.callback, '__qualname__', None) or repr(self.callback)

    async def execute(self, error: Optional[BaseException] = None) -> None:
        """执行回调，同步回调直接调用，返回可等待对象时等待其完成"""
        if self.event_type == TransactionEventType.COMMIT:
            result = self.callback()
        else:
            result = self.callback(error)
        if inspect.isawaitable(result):
            await result


class TransactionEvents:
    """事务事件管理器

    管理单个事务上下文的事件注册和执行。同一类型的回调按注册顺序启动，
    并发执行，全部结束后该阶段才算完成。
    """

    def __init__(self):
        self._events: List[TransactionEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def register(self, event_type: TransactionEventType, callback: EventCallback) -> EventCallback:
        """注册事件回调"""
        self._events.append(TransactionEvent(TransactionEventType(event_type), callback))
        return callback

    def of_type(self, event_type: TransactionEventType) -> List[TransactionEvent]:
        """按注册顺序返回指定类型的回调"""
        return [e for e in self._events if e.event_type == event_type]

    def clear(self) -> None:
        """清空所有回调"""
        self._events.clear()

    async def run(
        self,
        event_type: TransactionEventType,
        error: Optional[BaseException] = None
    ) -> List[EventExecutionError]:
        """并发执行指定类型的所有回调

        单个回调失败不会取消其他回调，也不会影响事务结果；
        失败会被记录日志并以 EventExecutionError 列表返回。

        Args:
            event_type: 事件类型
            error: 触发回滚的异常（ROLLBACK / COMPLETE 使用）

        Returns:
            执行过程中发生的错误列表
        """
        events = self.of_type(event_type)
        if not events:
            return []

        results = await asyncio.gather(
            *(event.execute(error) for event in events),
            return_exceptions=True
        )

        errors = []
        for event, result in zip(events, results):
            if result is None:
                continue
            if not isinstance(result, Exception):
                # 取消等非普通异常向上传播
                raise result
            event_error = EventExecutionError(event.name, result)
            errors.append(event_error)
            logger.error(f"{event_type.value} 事件回调 {event.name} 执行失败: {result}")

        return errors
