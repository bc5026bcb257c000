"""事务异常类

定义事务管理相关的异常层次结构
"""

from typing import Optional


class TransactionError(Exception):
    """事务错误基类

    所有可恢复的事务相关异常都继承自此类
    """
    pass


class TransactionNotActiveError(TransactionError):
    """事务未激活错误

    当尝试在非活跃状态的事务上执行操作时抛出
    """

    def __init__(self, message: str = "事务未激活"):
        super().__init__(message)


class TransactionAlreadyCommittedError(TransactionError):
    """事务已提交错误"""

    def __init__(self, message: str = "事务已提交，无法执行此操作"):
        super().__init__(message)


class TransactionAlreadyRolledBackError(TransactionError):
    """事务已回滚错误"""

    def __init__(self, message: str = "事务已回滚，无法执行此操作"):
        super().__init__(message)


class EventExecutionError(TransactionError):
    """事件回调执行错误

    包含回调名称和原始异常，事件失败不会改变事务结果
    """

    def __init__(self, event_name: str, original_error: BaseException):
        self.event_name = event_name
        self.original_error = original_error
        super().__init__(f"事件回调 '{event_name}' 执行失败: {original_error}")

    def __repr__(self) -> str:
        return f"EventExecutionError(event_name={self.event_name!r}, original_error={self.original_error!r})"


class PropagationError(TransactionError):
    """事务传播错误

    当事务传播行为不满足条件时抛出（MANDATORY 无事务 / NEVER 有事务）。
    按传播行为比较相等，而不是按对象身份:

        assert PropagationError("mandatory") == PropagationError("mandatory")
    """

    _MESSAGES = {
        "mandatory": "必须在事务中执行",
        "never": "不能在事务中执行",
    }

    def __init__(self, propagation, message: Optional[str] = None):
        # 延迟导入避免循环依赖
        from .propagation import TransactionPropagation

        self._propagation = TransactionPropagation(propagation)
        if message is None:
            message = self._MESSAGES.get(self._propagation.value, "传播行为不满足")
        super().__init__(f"[{self._propagation.name}] {message}")

    @property
    def propagation(self):
        """违反的传播行为"""
        return self._propagation

    def __eq__(self, other) -> bool:
        if not isinstance(other, PropagationError):
            return NotImplemented
        return type(self) is type(other) and self._propagation == other._propagation

    def __hash__(self) -> int:
        return hash((type(self), self._propagation))

    def __repr__(self) -> str:
        return f"PropagationError(propagation={self._propagation.name})"


class DatabaseConnectionError(BaseException):
    """数据库连接错误（致命）

    获取连接或开启事务失败时抛出。继承 BaseException 而不是 Exception，
    普通的 ``except Exception`` 不会吞掉它，也不会被当作业务异常回滚重试。
    原始异常保存在 ``__cause__`` 中。
    """

    def __init__(self, database_name: str, message: str = "数据库连接失败"):
        self.database_name = database_name
        super().__init__(f"[{database_name}] {message}")
