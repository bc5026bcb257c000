"""环境事务上下文

每个命名数据库连接拥有一个独立的上下文槽（基于 ContextVar），
同一任务内嵌套调用可以看到外层事务，并发任务之间互不可见。
"""

import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Dict, Iterator, Optional

from .context import TransactionContext


class TransactionSlot:
    """命名连接的事务上下文槽

    asyncio 任务创建时复制当前上下文，因此子任务能读到父任务的事务，
    但子任务里的设置不会影响父任务和兄弟任务。
    """

    def __init__(self, name: str):
        self.name = name
        self._var: ContextVar[Optional[TransactionContext]] = ContextVar(
            f"ydb_transaction_{name}", default=None
        )

    def get(self) -> Optional[TransactionContext]:
        """获取当前作用域的事务上下文"""
        return self._var.get()

    @contextmanager
    def use(self, context: Optional[TransactionContext]) -> Iterator[Optional[TransactionContext]]:
        """在 with 块内替换当前事务上下文，退出时恢复（包括异常退出）"""
        token = self._var.set(context)
        try:
            yield context
        finally:
            self._var.reset(token)

    def __repr__(self) -> str:
        return f"TransactionSlot(name={self.name!r}, current={self.get()!r})"


_slots: Dict[str, TransactionSlot] = {}
_slots_lock = threading.Lock()


def get_transaction_slot(name: str = "default") -> TransactionSlot:
    """获取（不存在时创建）命名连接的上下文槽，同名总是返回同一个槽"""
    slot = _slots.get(name)
    if slot is None:
        with _slots_lock:
            slot = _slots.get(name)
            if slot is None:
                slot = TransactionSlot(name)
                _slots[name] = slot
    return slot


def get_current_transaction(name: str = "default") -> Optional[TransactionContext]:
    """获取命名连接当前的事务上下文"""
    return get_transaction_slot(name).get()
