"""
有序序列服务
维护单元（课程内）、主题（单元内）、题目（主题内）的连续顺序号

顺序号在同一范围内的启用行之间唯一，且数据库逐行检查唯一约束，
所以整体 +1/-1 移位时中间状态不能有两行同号：
1. 被移动的行先停到哨兵值
2. 源范围内后面的行先取负（-(order-1)），再取绝对值
3. 目标范围内从目标位置开始的行先取负（-(order+1)），再取绝对值
4. 被移动的行写回目标位置
"""
import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from courseware.core.exceptions import NotFoundError, ValidationFailure
from courseware.models import CourseUnitContent, CourseTopicContent, CourseWWTopicQuestion

logger = logging.getLogger(__name__)

# 大于任何合法顺序号，移动过程中暂存被移动的行
SENTINEL_ORDER = 2_147_483_647


@dataclass(frozen=True)
class OrderedSequence:
    """一种有序内容：模型、顺序字段、范围（父级）字段"""
    model: type
    order_field: str
    scope_field: str
    label: str

    @property
    def order_column(self):
        return getattr(self.model, self.order_field)

    @property
    def scope_column(self):
        return getattr(self.model, self.scope_field)

    def active_in_scope(self, db: Session, scope_id: int):
        return db.query(self.model).filter(
            self.scope_column == scope_id,
            self.model.active == True
        )


UNIT_SEQUENCE = OrderedSequence(CourseUnitContent, "content_order", "course_id", "unit")
TOPIC_SEQUENCE = OrderedSequence(CourseTopicContent, "content_order", "course_unit_content_id", "topic")
QUESTION_SEQUENCE = OrderedSequence(CourseWWTopicQuestion, "problem_number", "course_topic_content_id", "question")


class OrderedSequenceService:
    """有序序列服务"""

    @staticmethod
    def next_order(db: Session, sequence: OrderedSequence, scope_id: int) -> int:
        """
        范围内下一个可用顺序号（启用行最大值 + 1）

        Args:
            db: 数据库会话
            sequence: 序列定义
            scope_id: 父级ID

        Returns:
            int: 顺序号，空范围返回 1
        """
        max_order = db.query(func.max(sequence.order_column)).filter(
            sequence.scope_column == scope_id,
            sequence.model.active == True,
            sequence.order_column < SENTINEL_ORDER
        ).scalar()
        return (max_order or 0) + 1

    @staticmethod
    def next_deleted_order(db: Session, sequence: OrderedSequence, scope_id: int) -> int:
        """
        软删除偏移量：范围内所有行（含已删除）用过的最大顺序号 + 1

        已删除的行一直保留，所以这个值只增不减，不会被复用。
        """
        max_order = db.query(func.max(sequence.order_column)).filter(
            sequence.scope_column == scope_id,
            sequence.order_column < SENTINEL_ORDER
        ).scalar()
        return (max_order or 0) + 1

    @staticmethod
    def _fix_negative_orders(db: Session, sequence: OrderedSequence, scope_id: int) -> int:
        """修正阶段：负的顺序号取绝对值"""
        order = sequence.order_column
        return sequence.active_in_scope(db, scope_id).filter(
            order < 0
        ).update({order: func.abs(order)}, synchronize_session=False)

    @staticmethod
    def shift_down_after(db: Session, sequence: OrderedSequence, scope_id: int, order_value: int) -> int:
        """
        递减阶段：order_value 之后的启用行顺序号 -1

        Returns:
            int: 移动的行数
        """
        order = sequence.order_column
        count = sequence.active_in_scope(db, scope_id).filter(
            order > order_value,
            order < SENTINEL_ORDER
        ).update({order: -(order - 1)}, synchronize_session=False)
        OrderedSequenceService._fix_negative_orders(db, sequence, scope_id)
        return count

    @staticmethod
    def shift_up_from(db: Session, sequence: OrderedSequence, scope_id: int, order_value: int) -> int:
        """
        递增阶段：从 order_value 开始的启用行顺序号 +1

        Returns:
            int: 移动的行数
        """
        order = sequence.order_column
        count = sequence.active_in_scope(db, scope_id).filter(
            order >= order_value,
            order < SENTINEL_ORDER
        ).update({order: -(order + 1)}, synchronize_session=False)
        OrderedSequenceService._fix_negative_orders(db, sequence, scope_id)
        return count

    @staticmethod
    def relocate(
        db: Session,
        sequence: OrderedSequence,
        scope_before: int,
        scope_after: int,
        source_order: int,
        target_order: int
    ):
        """
        把 scope_before 中 source_order 位置的行移到 scope_after 的 target_order

        不提交事务，调用方负责在同一个事务内提交或整体回滚。
        target_order 超过末尾时放到末尾；同位置移动是安全的空操作。

        Args:
            db: 数据库会话
            sequence: 序列定义
            scope_before: 原父级ID
            scope_after: 新父级ID
            source_order: 原顺序号
            target_order: 目标顺序号（从1开始）

        Returns:
            被移动的行

        Raises:
            ValidationFailure: target_order 小于 1
            NotFoundError: 原位置没有启用的行
        """
        if target_order is None or target_order < 1:
            raise ValidationFailure(f"Invalid {sequence.label} order: {target_order}")

        db.flush()
        item = sequence.active_in_scope(db, scope_before).filter(
            sequence.order_column == source_order
        ).first()
        if item is None:
            raise NotFoundError(f"No active {sequence.label} at position {source_order}")

        # 1. 停到哨兵值
        setattr(item, sequence.order_field, SENTINEL_ORDER)
        db.flush()

        # 2. 源范围收拢空位
        OrderedSequenceService.shift_down_after(db, sequence, scope_before, source_order)

        # 超过末尾的目标位置放到末尾
        target = min(target_order, OrderedSequenceService.next_order(db, sequence, scope_after))

        # 3. 目标范围腾出位置
        OrderedSequenceService.shift_up_from(db, sequence, scope_after, target)

        # 批量更新绕过了会话，已加载的行需要重新读取
        db.expire_all()

        # 4. 写回目标位置
        setattr(item, sequence.scope_field, scope_after)
        setattr(item, sequence.order_field, target)
        db.flush()

        logger.info(
            f"{sequence.label} {item.id} 移动: {scope_before}#{source_order} -> {scope_after}#{target}"
        )
        return item

    @staticmethod
    def orders_in_scope(db: Session, sequence: OrderedSequence, scope_id: int) -> list:
        """范围内启用行的顺序号（升序）"""
        rows = db.query(sequence.order_column).filter(
            sequence.scope_column == scope_id,
            sequence.model.active == True
        ).order_by(sequence.order_column.asc()).all()
        return [row[0] for row in rows]
