"""SQLAlchemy 数据源集成测试

使用 aiosqlite 文件数据库验证真实事务的提交、回滚与隔离
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import String
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ydb.config import DatabaseSettings
from ydb.orm import (
    DatabaseConnectionError,
    Repository,
    SQLAlchemyDataSource,
    TransactionPropagation,
    init_database,
)

from tests.helpers import BusinessError, EventRecorder


# ==================== 测试模型定义 ====================

class Base(DeclarativeBase):
    pass


class TxUser(Base):
    """事务测试用户模型"""
    __tablename__ = "test_tx_users"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(50))
    balance: Mapped[int] = mapped_column(default=0)


# ==================== Fixtures ====================

@pytest_asyncio.fixture
async def sqlite_db(sqlite_url):
    """绑定 SQLite 文件数据库的门面"""
    db = init_database("sqlite", url=sqlite_url)
    async with db.data_source.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


async def _names(db):
    async with db.transaction(TransactionPropagation.REQUIRES_NEW):
        users = await db.get_repository(TxUser).get_all()
        return sorted(u.name for u in users)


# ==================== 数据源创建测试 ====================

class TestDataSourceCreation:
    """数据源创建测试"""

    @pytest.mark.asyncio
    async def test_from_settings(self, sqlite_url):
        data_source = SQLAlchemyDataSource.from_settings(DatabaseSettings(url=sqlite_url), name="cfg")
        try:
            assert data_source.name == "cfg"
            assert data_source.engine.url.get_backend_name() == "sqlite"
        finally:
            await data_source.dispose()

    @pytest.mark.asyncio
    async def test_init_database_from_config(self, sqlite_url):
        db = init_database("cfg", config=DatabaseSettings(url=sqlite_url))
        try:
            assert isinstance(db.data_source, SQLAlchemyDataSource)
        finally:
            await db.dispose()

    @pytest.mark.asyncio
    async def test_memory_database_uses_static_pool(self):
        data_source = SQLAlchemyDataSource.from_url("sqlite+aiosqlite:///:memory:")
        try:
            assert type(data_source.engine.pool).__name__ == "StaticPool"
        finally:
            await data_source.dispose()

    def test_url_is_required(self):
        with pytest.raises(ValueError):
            SQLAlchemyDataSource.from_url("")

    @pytest.mark.asyncio
    async def test_connection_failure(self, tmp_path):
        """测试无法连接时抛出 DatabaseConnectionError"""
        url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}"
        db = init_database("unreachable", url=url)
        try:
            with pytest.raises(DatabaseConnectionError):
                async with db.transaction():
                    pass
        finally:
            await db.dispose()


# ==================== 事务测试 ====================

class TestTransactions:
    """真实事务测试"""

    @pytest.mark.asyncio
    async def test_commit_persists(self, sqlite_db):
        """测试提交后数据持久化"""
        async with sqlite_db.transaction() as tx:
            assert isinstance(tx.manager, AsyncSession)
            user = await sqlite_db.get_repository(TxUser).add(TxUser(name="tom"))
            assert user.id is not None

        assert await _names(sqlite_db) == ["tom"]

    @pytest.mark.asyncio
    async def test_rollback_discards(self, sqlite_db):
        """测试异常时回滚"""
        recorder = EventRecorder()

        with pytest.raises(BusinessError):
            async with sqlite_db.transaction():
                recorder.register(sqlite_db)
                await sqlite_db.get_repository(TxUser).add(TxUser(name="jerry"))
                raise BusinessError()

        assert await _names(sqlite_db) == []
        assert recorder.names == ["rollback", "complete"]

    @pytest.mark.asyncio
    async def test_joined_scope_shares_session(self, sqlite_db):
        """测试 REQUIRED 嵌套使用同一个会话"""
        async with sqlite_db.transaction():
            outer_manager = sqlite_db.manager
            async with sqlite_db.transaction(TransactionPropagation.REQUIRED):
                assert sqlite_db.manager is outer_manager
                await sqlite_db.get_repository(TxUser).add(TxUser(name="inner"))

        assert await _names(sqlite_db) == ["inner"]

    @pytest.mark.asyncio
    async def test_requires_new_commits_independently(self, sqlite_db):
        """测试 REQUIRES_NEW 独立提交，外层回滚不影响内层"""

        @sqlite_db.transactional(TransactionPropagation.REQUIRES_NEW)
        async def audit_log(action):
            await sqlite_db.get_repository(TxUser).add(TxUser(name=action))

        with pytest.raises(BusinessError):
            async with sqlite_db.transaction():
                outer_manager = sqlite_db.manager
                await audit_log("audit")
                assert sqlite_db.manager is outer_manager
                await sqlite_db.get_repository(TxUser).add(TxUser(name="outer"))
                raise BusinessError()

        assert await _names(sqlite_db) == ["audit"]

    @pytest.mark.asyncio
    async def test_on_commit_sees_committed_data(self, sqlite_db):
        """测试提交后回调能读到已提交的数据"""
        seen = []

        async with sqlite_db.transaction():
            await sqlite_db.get_repository(TxUser).add(TxUser(name="tom"))

            @sqlite_db.on_commit
            async def check():
                seen.extend(await _names(sqlite_db))

        assert seen == ["tom"]


# ==================== 非事务作用域测试 ====================

class TestNotSupported:
    """NOT_SUPPORTED 与事务外默认会话测试"""

    @pytest.mark.asyncio
    async def test_write_is_autocommitted(self, sqlite_db):
        """测试挂起外层事务后的写入立即生效"""
        async with sqlite_db.transaction(TransactionPropagation.REQUIRES_NEW):
            async with sqlite_db.transaction(TransactionPropagation.NOT_SUPPORTED) as tx:
                assert sqlite_db.is_in_transaction is False
                assert isinstance(tx.manager, AsyncSession)
                await sqlite_db.get_repository(TxUser).add(TxUser(name="audit"))

        assert await _names(sqlite_db) == ["audit"]

    @pytest.mark.asyncio
    async def test_outer_transaction_commits_after_suspended_write(self, sqlite_db):
        """测试挂起期间的写入不阻塞外层事务提交"""
        async with sqlite_db.transaction(TransactionPropagation.REQUIRES_NEW):
            async with sqlite_db.transaction(TransactionPropagation.NOT_SUPPORTED):
                await sqlite_db.get_repository(TxUser).add(TxUser(name="audit"))
            await sqlite_db.get_repository(TxUser).add(TxUser(name="outer"))

        assert await _names(sqlite_db) == ["audit", "outer"]

    @pytest.mark.asyncio
    async def test_suspended_write_survives_outer_rollback(self, sqlite_db):
        with pytest.raises(BusinessError):
            async with sqlite_db.transaction():
                async with sqlite_db.transaction(TransactionPropagation.NOT_SUPPORTED):
                    await sqlite_db.get_repository(TxUser).add(TxUser(name="audit"))
                await sqlite_db.get_repository(TxUser).add(TxUser(name="outer"))
                raise BusinessError()

        assert await _names(sqlite_db) == ["audit"]

    @pytest.mark.asyncio
    async def test_suspended_session_returns_connection(self, sqlite_db):
        pool = sqlite_db.data_source.engine.pool

        async with sqlite_db.transaction(TransactionPropagation.REQUIRES_NEW):
            async with sqlite_db.transaction(TransactionPropagation.NOT_SUPPORTED):
                await sqlite_db.get_repository(TxUser).get_all()
                assert pool.checkedout() == 2

        assert pool.checkedout() == 0

    @pytest.mark.asyncio
    async def test_default_session_closed_when_task_finishes(self, sqlite_db):
        """测试每个任务的默认会话在任务结束后关闭，连接池不会耗尽"""
        data_source = sqlite_db.data_source
        async with sqlite_db.transaction():
            await sqlite_db.get_repository(TxUser).add(TxUser(name="tom"))

        async def handle_request():
            async with sqlite_db.transaction(TransactionPropagation.REQUIRES_NEW):
                async with sqlite_db.transaction(TransactionPropagation.NOT_SUPPORTED):
                    assert len(await sqlite_db.get_repository(TxUser).get_all()) == 1
            # 事务外直接使用任务默认会话
            assert len(await sqlite_db.get_repository(TxUser).get_all()) == 1

        # 超过 pool_size + max_overflow
        for _ in range(30):
            await asyncio.create_task(handle_request())

        await asyncio.sleep(0)
        await data_source.cleanup()

        assert data_source.manager.registry.registry == {}
        assert data_source.engine.pool.checkedout() == 0

    @pytest.mark.asyncio
    async def test_default_session_write_is_autocommitted(self, sqlite_db):
        """测试事务外通过默认会话写入无需显式提交"""

        async def write():
            await sqlite_db.get_repository(TxUser).add(TxUser(name="direct"))

        await asyncio.create_task(write())

        assert await _names(sqlite_db) == ["direct"]


# ==================== 仓储测试 ====================

class TestRepository:
    """仓储测试"""

    @pytest.mark.asyncio
    async def test_queries(self, sqlite_db):
        async with sqlite_db.transaction():
            repo = sqlite_db.get_repository(TxUser)
            assert isinstance(repo, Repository)

            await repo.add_all([
                TxUser(name="a", balance=10),
                TxUser(name="b", balance=20),
                TxUser(name="c", balance=20),
            ])

            assert await repo.count() == 3
            assert await repo.count(TxUser.balance > 10) == 2
            assert len(await repo.get_list_by_conditions({"balance": 20})) == 2
            assert [u.name for u in await repo.find(TxUser.name == "a")] == ["a"]

            first = (await repo.find(TxUser.name == "a"))[0]
            assert (await repo.get(first.id)).name == "a"
            assert await repo.get(9999) is None

            locked = await repo.get_for_update(id=first.id)
            assert [u.id for u in locked] == [first.id]
            locked = await repo.get_for_update(TxUser.balance == 20, skip_locked=True)
            assert len(locked) == 2

            await repo.delete(first)
            assert await repo.count() == 2

    @pytest.mark.asyncio
    async def test_default_manager_outside_transaction(self, sqlite_db):
        """测试事务外使用按任务隔离的默认会话"""
        async with sqlite_db.transaction():
            await sqlite_db.get_repository(TxUser).add(TxUser(name="tom"))

        try:
            users = await sqlite_db.get_repository(TxUser).get_all()
            assert [u.name for u in users] == ["tom"]
        finally:
            await sqlite_db.data_source.cleanup()
