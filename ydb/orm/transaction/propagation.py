"""事务传播行为

定义当工作单元在已有事务上下文中被调用时的行为
"""

from enum import Enum
from typing import Dict, Tuple, Union


class TransactionPropagation(str, Enum):
    """事务传播行为

    定义嵌套调用时事务的处理方式，类似 Spring 的事务传播机制

    使用示例:
        @db.transactional(TransactionPropagation.REQUIRED)
        async def service_a():
            ...

        @db.transactional(TransactionPropagation.REQUIRES_NEW)
        async def audit_log():
            # 总是在新事务中执行
            ...
    """

    REQUIRED = "required"
    """如果当前有事务则加入，没有则新建（默认）"""

    REQUIRES_NEW = "requires_new"
    """总是新建事务，外层事务在内层执行期间被挂起

    适用场景：
    - 审计日志：无论主事务是否成功，都要记录
    """

    SUPPORTS = "supports"
    """如果当前有事务则加入，没有则以非事务方式执行"""

    NOT_SUPPORTED = "not_supported"
    """以非事务方式执行，如果当前有事务则挂起"""

    MANDATORY = "mandatory"
    """必须在事务中执行，否则抛出 PropagationError"""

    NEVER = "never"
    """必须不在事务中执行，否则抛出 PropagationError"""


class PropagationAction(str, Enum):
    """传播决策结果"""

    INLINE = "inline"
    """原样执行，不改变当前事务上下文"""

    ISOLATED = "isolated"
    """清空当前事务上下文（挂起），以非事务方式执行"""

    NEW_TRANSACTION = "new_transaction"
    """开启新的数据库事务"""

    FAIL = "fail"
    """拒绝执行，抛出 PropagationError"""


# (有活跃事务时, 无活跃事务时)
_DECISION_TABLE: Dict[TransactionPropagation, Tuple[PropagationAction, PropagationAction]] = {
    TransactionPropagation.MANDATORY: (PropagationAction.INLINE, PropagationAction.FAIL),
    TransactionPropagation.NEVER: (PropagationAction.FAIL, PropagationAction.INLINE),
    TransactionPropagation.NOT_SUPPORTED: (PropagationAction.ISOLATED, PropagationAction.INLINE),
    TransactionPropagation.REQUIRED: (PropagationAction.INLINE, PropagationAction.NEW_TRANSACTION),
    TransactionPropagation.REQUIRES_NEW: (PropagationAction.NEW_TRANSACTION, PropagationAction.NEW_TRANSACTION),
    TransactionPropagation.SUPPORTS: (PropagationAction.INLINE, PropagationAction.INLINE),
}

_missing = set(TransactionPropagation) - set(_DECISION_TABLE)
if _missing:
    raise RuntimeError(f"传播行为缺少决策: {sorted(p.value for p in _missing)}")


def decide(
    propagation: Union[TransactionPropagation, str],
    active: bool
) -> PropagationAction:
    """根据传播行为和当前是否处于事务中，决定执行方式

    Args:
        propagation: 传播行为（枚举或其字符串值）
        active: 当前连接是否存在活跃事务

    Returns:
        PropagationAction

    Raises:
        ValueError: 未知的传播行为
    """
    when_active, when_inactive = _DECISION_TABLE[TransactionPropagation(propagation)]
    return when_active if active else when_inactive
