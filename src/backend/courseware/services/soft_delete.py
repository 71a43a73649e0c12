"""
软删除服务
停用单元/主题/题目并收拢剩余同级内容的顺序号

- 被删除的行：顺序号加上偏移量（范围内用过的最大顺序号 + 1），名称追加 "(偏移量)"
- 仍启用的同级行：原顺序号之后的全部 -1，保持 1..N 连续
- 单元删除级联主题，主题删除级联题目（先删子级）
- 已停用的行不能再次删除（NotFoundError）
成绩和作答记录不受影响。
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from courseware.core.database import atomic
from courseware.core.exceptions import NotFoundError
from courseware.models import CourseUnitContent, CourseTopicContent, CourseWWTopicQuestion
from courseware.services.ordering import (
    OrderedSequence,
    OrderedSequenceService,
    UNIT_SEQUENCE,
    TOPIC_SEQUENCE,
    QUESTION_SEQUENCE,
)

logger = logging.getLogger(__name__)


class SoftDeleteService:
    """软删除服务"""

    @staticmethod
    def _deactivate(db: Session, sequence: OrderedSequence, item, name_field: Optional[str] = None) -> int:
        """停用一行并收拢同级顺序号，返回使用的偏移量"""
        scope_id = getattr(item, sequence.scope_field)
        original_order = getattr(item, sequence.order_field)
        offset = OrderedSequenceService.next_deleted_order(db, sequence, scope_id)

        item.active = False
        setattr(item, sequence.order_field, original_order + offset)
        if name_field:
            setattr(item, name_field, f"{getattr(item, name_field)} ({offset})")
        db.flush()

        OrderedSequenceService.shift_down_after(db, sequence, scope_id, original_order)
        db.expire_all()
        return offset

    @staticmethod
    def _delete_question(db: Session, question: CourseWWTopicQuestion) -> int:
        SoftDeleteService._deactivate(db, QUESTION_SEQUENCE, question)
        return 1

    @staticmethod
    def _delete_topic(db: Session, topic: CourseTopicContent) -> int:
        count = 0
        questions = QUESTION_SEQUENCE.active_in_scope(db, topic.id).order_by(
            CourseWWTopicQuestion.problem_number.desc()
        ).all()
        for question in questions:
            count += SoftDeleteService._delete_question(db, question)

        SoftDeleteService._deactivate(db, TOPIC_SEQUENCE, topic, name_field="name")
        return count + 1

    @staticmethod
    def _delete_unit(db: Session, unit: CourseUnitContent) -> int:
        count = 0
        topics = TOPIC_SEQUENCE.active_in_scope(db, unit.id).order_by(
            CourseTopicContent.content_order.desc()
        ).all()
        for topic in topics:
            count += SoftDeleteService._delete_topic(db, topic)

        SoftDeleteService._deactivate(db, UNIT_SEQUENCE, unit, name_field="name")
        return count + 1

    @staticmethod
    def _get_active(db: Session, model, item_id: int, label: str):
        item = db.query(model).filter(model.id == item_id, model.active == True).first()
        if item is None:
            raise NotFoundError(f"Could not find an active {label} with id {item_id}")
        return item

    @staticmethod
    def delete_question(db: Session, question_id: int) -> int:
        """
        软删除题目

        Args:
            db: 数据库会话
            question_id: 题目ID

        Returns:
            int: 停用的行数
        """
        with atomic(db):
            question = SoftDeleteService._get_active(db, CourseWWTopicQuestion, question_id, "question")
            count = SoftDeleteService._delete_question(db, question)
        logger.info(f"软删除题目 {question_id}")
        return count

    @staticmethod
    def delete_topic(db: Session, topic_id: int) -> int:
        """
        软删除主题（级联题目）

        Returns:
            int: 停用的行数（主题 + 题目）
        """
        with atomic(db):
            topic = SoftDeleteService._get_active(db, CourseTopicContent, topic_id, "topic")
            count = SoftDeleteService._delete_topic(db, topic)
        logger.info(f"软删除主题 {topic_id}，共停用 {count} 条内容")
        return count

    @staticmethod
    def delete_unit(db: Session, unit_id: int) -> int:
        """
        软删除单元（级联主题和题目）

        Returns:
            int: 停用的行数（单元 + 主题 + 题目）
        """
        with atomic(db):
            unit = SoftDeleteService._get_active(db, CourseUnitContent, unit_id, "unit")
            count = SoftDeleteService._delete_unit(db, unit)
        logger.info(f"软删除单元 {unit_id}，共停用 {count} 条内容")
        return count
