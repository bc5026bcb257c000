"""
内存数据源

测试用的数据源替身：从不访问数据库，只记录会话的生命周期，
传播行为和事件语义与生产数据源完全一致。
"""

from typing import Any, List, Optional, Type

from .data_source import DataSource, TransactionSession


class MemorySession:
    """占位资源句柄，仅用于区分不同作用域"""

    def __init__(self, label: str):
        self.label = label

    def __repr__(self) -> str:
        return f"MemorySession({self.label!r})"


class MemoryTransactionSession(TransactionSession):
    """记录提交 / 回滚 / 释放调用的事务句柄"""

    def __init__(self, label: str):
        self._manager = MemorySession(label)
        self.committed = False
        self.rolled_back = False
        self.released = False
        self.release_count = 0

    @property
    def manager(self) -> MemorySession:
        return self._manager

    async def commit(self) -> None:
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True

    async def release(self) -> None:
        self.released = True
        self.release_count += 1


class MemoryDataSource(DataSource):
    """内存数据源

    使用示例:
        db = init_test_database("default")

        async with db.transaction():
            ...

        session = db.data_source.sessions[-1]
        assert session.committed and session.released
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._manager = MemorySession(f"{name}:default")
        self.sessions: List[MemoryTransactionSession] = []
        self.disposed = False

    @property
    def manager(self) -> MemorySession:
        return self._manager

    @property
    def last_session(self) -> Optional[MemoryTransactionSession]:
        return self.sessions[-1] if self.sessions else None

    async def begin(self) -> MemoryTransactionSession:
        session = MemoryTransactionSession(f"{self.name}:{len(self.sessions) + 1}")
        self.sessions.append(session)
        return session

    def get_repository(self, manager: Any, entity: Type) -> None:
        return None

    async def dispose(self) -> None:
        self.disposed = True

    def __repr__(self) -> str:
        return f"MemoryDataSource(name={self.name!r}, sessions={len(self.sessions)})"
