"""事务传播行为使用示例

演示 Database 门面的各种使用场景：
1. REQUIRED：嵌套调用共享同一个事务
2. REQUIRES_NEW：审计日志独立提交
3. MANDATORY：必须在调用方事务中执行
4. NOT_SUPPORTED：挂起外层事务，写入自动提交
5. NEVER：只允许在事务外执行
6. 事务事件（on_commit / on_rollback / on_complete）

运行方式：
    python examples/orm/demo_propagation.py
"""

import asyncio
import os
import sys
from pathlib import Path

# 添加项目根目录到 path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ydb import init_database, setup_root_logger, LoggingSettings
from ydb.orm import PropagationError, TransactionPropagation


# ==================== 模型定义 ====================

class Base(DeclarativeBase):
    pass


class Account(Base):
    __tablename__ = "demo_account"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner: Mapped[str] = mapped_column(String(50))
    balance: Mapped[int] = mapped_column(default=0)


class AuditLog(Base):
    __tablename__ = "demo_audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    action: Mapped[str] = mapped_column(String(200))


# ==================== 辅助函数 ====================

def print_section(title: str):
    """打印章节标题"""
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")


def print_info(message: str):
    """打印信息"""
    print(f"[INFO] {message}")


# ==================== 业务代码 ====================

script_dir = os.path.dirname(os.path.abspath(__file__))
db_path = os.path.join(script_dir, "demo_propagation.db")

db = init_database("default", url=f"sqlite+aiosqlite:///{db_path}")


@db.transactional(TransactionPropagation.REQUIRES_NEW)
async def audit(action: str):
    """审计日志：无论主事务是否成功都要记录"""
    await db.get_repository(AuditLog).add(AuditLog(action=action))


@db.transactional(TransactionPropagation.MANDATORY)
async def withdraw(account: Account, amount: int):
    """扣款：必须在调用方的事务中执行"""
    if account.balance < amount:
        raise ValueError(f"{account.owner} 余额不足")
    account.balance -= amount
    await db.get_repository(Account).add(account)


@db.transactional(TransactionPropagation.NOT_SUPPORTED)
async def record_attempt(action: str):
    """挂起外层事务，以自动提交方式记录"""
    print_info(f"NOT_SUPPORTED 内 is_in_transaction = {db.is_in_transaction}")
    await db.get_repository(AuditLog).add(AuditLog(action=action))


@db.transactional(TransactionPropagation.NEVER)
async def balance_report():
    """余额报表：不允许在事务中执行"""
    accounts = await db.get_repository(Account).get_all()
    return {a.owner: a.balance for a in accounts}


@db.transactional()
async def transfer(source_id: int, target_id: int, amount: int):
    repo = db.get_repository(Account)
    source = await repo.get(source_id)
    target = await repo.get(target_id)

    await audit(f"transfer {amount}: {source.owner} -> {target.owner}")
    await withdraw(source, amount)
    target.balance += amount

    db.on_commit(lambda: print_info(f"事务 {db.transaction_id} 已提交"))
    db.on_rollback(lambda error: print_info(f"转账回滚: {error}"))


async def main():
    if os.path.exists(db_path):
        os.remove(db_path)

    async with db.data_source.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with db.transaction():
        accounts = await db.get_repository(Account).add_all([
            Account(owner="tom", balance=100),
            Account(owner="jerry", balance=0),
        ])
    tom, jerry = accounts

    print_section("场景1：转账成功")
    await transfer(tom.id, jerry.id, 60)

    print_section("场景2：转账失败，审计日志仍然保留")
    try:
        await transfer(tom.id, jerry.id, 60)
    except ValueError as e:
        print_info(f"捕获异常: {e}")

    print_section("场景3：MANDATORY 在事务外调用")
    try:
        await withdraw(tom, 1)
    except PropagationError as e:
        print_info(f"捕获异常: {e!r}")

    print_section("场景4：NOT_SUPPORTED 挂起外层事务")
    try:
        async with db.transaction():
            # SQLite 写锁：挂起期间的写入要在外层事务写入之前
            await record_attempt("attempt before failure")
            raise RuntimeError("外层事务失败")
    except RuntimeError as e:
        print_info(f"捕获异常: {e}，NOT_SUPPORTED 中的写入已自动提交")

    print_section("场景5：NEVER")
    print_info(f"余额报表: {await balance_report()}")
    try:
        async with db.transaction():
            await balance_report()
    except PropagationError as e:
        print_info(f"捕获异常: {e!r}")

    print_section("结果")
    async with db.transaction(TransactionPropagation.REQUIRES_NEW):
        for account in await db.get_repository(Account).get_all():
            print_info(f"{account.owner}: {account.balance}")
        for log in await db.get_repository(AuditLog).get_all():
            print_info(f"审计: {log.action}")

    await db.dispose()


if __name__ == "__main__":
    setup_root_logger(config=LoggingSettings(level="INFO"))
    asyncio.run(main())
