"""仓储模块

绑定到会话的轻量数据访问句柄。仓储只 flush，从不 commit，
提交由所在的事务作用域负责。
"""

from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select

T = TypeVar('T')


class Repository(Generic[T]):
    """实体仓储

    使用示例:
        async with db.transaction():
            repo = db.get_repository(User)
            user = await repo.add(User(username="tom"))
            users = await repo.get_list_by_conditions({"is_active": True})
    """

    def __init__(self, entity: Type[T], session: Any):
        self.entity = entity
        self.session = session

    async def get(self, id: Any) -> Optional[T]:
        """根据主键获取对象，不存在返回None"""
        return await self.session.get(self.entity, id)

    async def get_all(self) -> List[T]:
        result = await self.session.execute(select(self.entity))
        return list(result.scalars().all())

    async def get_list_by_conditions(self, conditions: dict) -> List[T]:
        """根据条件获取列表"""
        result = await self.session.execute(select(self.entity).filter_by(**conditions))
        return list(result.scalars().all())

    async def find(self, *criteria: Any) -> List[T]:
        """根据 SQLAlchemy 表达式查询

        使用示例:
            await repo.find(User.age > 18, User.name.like("t%"))
        """
        result = await self.session.execute(select(self.entity).where(*criteria))
        return list(result.scalars().all())

    async def get_for_update(
        self,
        *criteria: Any,
        id: Any = None,
        skip_locked: bool = False
    ) -> List[T]:
        """查询并加行锁（SELECT ... FOR UPDATE）

        必须在事务中调用，锁在事务结束时释放。

        Args:
            criteria: 过滤表达式
            id: 按主键过滤，等价于 ``Entity.id == id``
            skip_locked: 跳过已被其他事务锁定的行
        """
        stmt = select(self.entity)
        if id is not None:
            stmt = stmt.where(self.entity.id == id)
        if criteria:
            stmt = stmt.where(*criteria)
        stmt = stmt.with_for_update(skip_locked=skip_locked)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, *criteria: Any) -> int:
        stmt = select(func.count()).select_from(self.entity)
        if criteria:
            stmt = stmt.where(*criteria)
        return await self.session.scalar(stmt) or 0

    async def add(self, obj: T) -> T:
        """添加对象并 flush（获取自动生成字段）"""
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def add_all(self, objects: Sequence[T]) -> List[T]:
        self.session.add_all(objects)
        await self.session.flush()
        return list(objects)

    async def delete(self, obj: T) -> None:
        await self.session.delete(obj)
        await self.session.flush()

    def __repr__(self) -> str:
        return f"Repository({self.entity.__name__})"
