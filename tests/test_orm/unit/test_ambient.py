"""环境事务上下文槽测试"""

import asyncio

import pytest

from ydb.orm.transaction import (
    TransactionContext,
    get_current_transaction,
    get_transaction_slot,
)


class TestTransactionSlot:
    """TransactionSlot 测试"""

    def test_same_name_returns_same_slot(self):
        assert get_transaction_slot("slot-a") is get_transaction_slot("slot-a")
        assert get_transaction_slot("slot-a") is not get_transaction_slot("slot-b")

    def test_default_is_empty(self):
        assert get_transaction_slot("slot-empty").get() is None
        assert get_current_transaction("slot-empty") is None

    def test_use_restores_previous_value(self):
        slot = get_transaction_slot("slot-nested")
        outer = TransactionContext.create_not_in_transaction("outer")
        inner = TransactionContext.create_not_in_transaction("inner")

        with slot.use(outer):
            with slot.use(inner):
                assert slot.get() is inner
            assert slot.get() is outer
        assert slot.get() is None

    def test_use_restores_on_error(self):
        slot = get_transaction_slot("slot-error")
        ctx = TransactionContext.create_not_in_transaction(None)

        with pytest.raises(ValueError):
            with slot.use(ctx):
                raise ValueError()

        assert slot.get() is None

    def test_use_none_clears_slot(self):
        slot = get_transaction_slot("slot-clear")
        ctx = TransactionContext.create_not_in_transaction(None)

        with slot.use(ctx):
            with slot.use(None):
                assert get_current_transaction("slot-clear") is None
            assert get_current_transaction("slot-clear") is ctx

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        """测试并发任务之间互不可见"""
        slot = get_transaction_slot("slot-tasks")

        async def work(label):
            ctx = TransactionContext.create_not_in_transaction(label)
            with slot.use(ctx):
                await asyncio.sleep(0.01)
                return slot.get().manager

        results = await asyncio.gather(work("first"), work("second"))

        assert results == ["first", "second"]
        assert slot.get() is None
