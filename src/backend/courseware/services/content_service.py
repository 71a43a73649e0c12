"""
课程内容服务
单元、主题、题目的创建/修改/删除

- 创建时不指定顺序号则追加到末尾
- 修改顺序号或移动到其他父级时走有序序列的四阶段移动
- 删除为软删除
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from courseware.core.database import atomic
from courseware.core.exceptions import NotFoundError, ValidationFailure, translate_integrity_error
from courseware.models import (
    CourseUnitContent,
    CourseTopicContent,
    CourseWWTopicQuestion,
    UNLIMITED_ATTEMPTS,
)
from courseware.services.enrollment_service import EnrollmentService
from courseware.services.ordering import (
    OrderedSequence,
    OrderedSequenceService,
    UNIT_SEQUENCE,
    TOPIC_SEQUENCE,
    QUESTION_SEQUENCE,
)
from courseware.services.soft_delete import SoftDeleteService

logger = logging.getLogger(__name__)

UNIT_CONFLICTS = {
    ("course_id", "name"): "A unit with that name already exists within this course",
    ("course_id", "content_order"): "A unit already exists with this order",
}

TOPIC_CONFLICTS = {
    ("course_unit_content_id", "name"): "A topic with that name already exists within this unit",
    ("course_unit_content_id", "content_order"): "A topic already exists with this unit order",
}

QUESTION_CONFLICTS = {
    ("course_topic_content_id", "problem_number"): "A question with this topic order already exists",
}


def _resolve_new_order(db: Session, sequence: OrderedSequence, scope_id: int, order: Optional[int]) -> int:
    """未指定时追加到末尾；指定时必须在 1..末尾+1 之内，不能留空位"""
    next_order = OrderedSequenceService.next_order(db, sequence, scope_id)
    if order is None:
        return next_order
    if order < 1 or order > next_order:
        raise ValidationFailure(f"{sequence.label} order must be between 1 and {next_order}")
    return order


def _get_active(db: Session, model, item_id: int, message: str):
    item = db.query(model).filter(model.id == item_id, model.active == True).first()
    if item is None:
        raise NotFoundError(message)
    return item


class ContentService:
    """课程内容服务"""

    # ========== 单元 ==========

    @staticmethod
    def create_unit(
        db: Session,
        course_id: int,
        name: str,
        content_order: Optional[int] = None
    ) -> CourseUnitContent:
        """
        创建单元

        Args:
            db: 数据库会话
            course_id: 课程ID
            name: 单元名称（课程内唯一）
            content_order: 顺序号（默认追加到末尾）

        Raises:
            AlreadyExistsError: 名称或顺序号冲突
            NotFoundError: 课程不存在
        """
        try:
            with atomic(db):
                unit = CourseUnitContent(
                    course_id=course_id,
                    name=name,
                    content_order=_resolve_new_order(db, UNIT_SEQUENCE, course_id, content_order),
                    active=True
                )
                db.add(unit)
        except IntegrityError as e:
            raise translate_integrity_error(
                e, CourseUnitContent.__table__, UNIT_CONFLICTS,
                not_found_message="The given course was not found to create the unit",
            ) from e

        db.refresh(unit)
        logger.info(f"创建单元: {unit.name} (course={course_id}, order={unit.content_order})")
        return unit

    @staticmethod
    def update_unit(
        db: Session,
        unit_id: int,
        name: Optional[str] = None,
        content_order: Optional[int] = None
    ) -> CourseUnitContent:
        """
        修改单元（改名/调整顺序）

        Raises:
            NotFoundError: 单元不存在或已删除
            AlreadyExistsError: 名称冲突
            ValidationFailure: 顺序号无效
        """
        try:
            with atomic(db):
                unit = _get_active(db, CourseUnitContent, unit_id, "Could not find the unit to update")
                if content_order is not None and content_order != unit.content_order:
                    OrderedSequenceService.relocate(
                        db, UNIT_SEQUENCE, unit.course_id, unit.course_id, unit.content_order, content_order
                    )
                if name is not None:
                    unit.name = name
                db.flush()
        except IntegrityError as e:
            raise translate_integrity_error(e, CourseUnitContent.__table__, UNIT_CONFLICTS) from e

        db.refresh(unit)
        return unit

    @staticmethod
    def delete_unit(db: Session, unit_id: int) -> int:
        return SoftDeleteService.delete_unit(db, unit_id)

    # ========== 主题 ==========

    @staticmethod
    def create_topic(
        db: Session,
        unit_id: int,
        name: str,
        start_date: datetime,
        end_date: datetime,
        dead_date: datetime,
        content_order: Optional[int] = None,
        partial_extend: bool = False
    ) -> CourseTopicContent:
        """
        创建主题

        日期需满足 start_date <= end_date <= dead_date（调用方保证）

        Raises:
            AlreadyExistsError: 名称或顺序号冲突
            NotFoundError: 单元不存在
        """
        try:
            with atomic(db):
                topic = CourseTopicContent(
                    course_unit_content_id=unit_id,
                    name=name,
                    content_order=_resolve_new_order(db, TOPIC_SEQUENCE, unit_id, content_order),
                    start_date=start_date,
                    end_date=end_date,
                    dead_date=dead_date,
                    partial_extend=partial_extend,
                    active=True
                )
                db.add(topic)
        except IntegrityError as e:
            raise translate_integrity_error(
                e, CourseTopicContent.__table__, TOPIC_CONFLICTS,
                not_found_message="The given unit was not found to create the topic",
            ) from e

        db.refresh(topic)
        logger.info(f"创建主题: {topic.name} (unit={unit_id}, order={topic.content_order})")
        return topic

    @staticmethod
    def update_topic(
        db: Session,
        topic_id: int,
        name: Optional[str] = None,
        content_order: Optional[int] = None,
        unit_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        dead_date: Optional[datetime] = None,
        partial_extend: Optional[bool] = None
    ) -> CourseTopicContent:
        """
        修改主题

        unit_id 指定时移动到同一课程的另一个单元，未给顺序号时放到末尾。

        Raises:
            NotFoundError: 主题或目标单元不存在
            ValidationFailure: 目标单元不属于同一课程，或顺序号无效
            AlreadyExistsError: 名称冲突
        """
        try:
            with atomic(db):
                topic = _get_active(db, CourseTopicContent, topic_id, "Could not find the topic to update")
                scope_before = topic.course_unit_content_id
                scope_after = scope_before

                if unit_id is not None and unit_id != scope_before:
                    target_unit = _get_active(db, CourseUnitContent, unit_id, "Could not find the target unit")
                    if target_unit.course_id != topic.unit.course_id:
                        raise ValidationFailure("A topic can only be moved to a unit of the same course")
                    scope_after = unit_id

                if scope_after != scope_before or (
                    content_order is not None and content_order != topic.content_order
                ):
                    target = content_order
                    if target is None:
                        target = OrderedSequenceService.next_order(db, TOPIC_SEQUENCE, scope_after)
                    OrderedSequenceService.relocate(
                        db, TOPIC_SEQUENCE, scope_before, scope_after, topic.content_order, target
                    )

                if name is not None:
                    topic.name = name
                if start_date is not None:
                    topic.start_date = start_date
                if end_date is not None:
                    topic.end_date = end_date
                if dead_date is not None:
                    topic.dead_date = dead_date
                if partial_extend is not None:
                    topic.partial_extend = partial_extend
                db.flush()
        except IntegrityError as e:
            raise translate_integrity_error(e, CourseTopicContent.__table__, TOPIC_CONFLICTS) from e

        db.refresh(topic)
        return topic

    @staticmethod
    def delete_topic(db: Session, topic_id: int) -> int:
        return SoftDeleteService.delete_topic(db, topic_id)

    # ========== 题目 ==========

    @staticmethod
    def add_question(
        db: Session,
        topic_id: int,
        webwork_question_path: str,
        problem_number: Optional[int] = None,
        weight: float = 1,
        max_attempts: int = UNLIMITED_ATTEMPTS,
        hidden: bool = False,
        optional: bool = False
    ) -> CourseWWTopicQuestion:
        """
        新建题目并为课程全部在读学生补齐成绩（同一事务）

        Raises:
            AlreadyExistsError: 题号冲突
            NotFoundError: 主题不存在
        """
        try:
            with atomic(db):
                question = CourseWWTopicQuestion(
                    course_topic_content_id=topic_id,
                    problem_number=_resolve_new_order(db, QUESTION_SEQUENCE, topic_id, problem_number),
                    weight=weight,
                    max_attempts=max_attempts,
                    hidden=hidden,
                    optional=optional,
                    webwork_question_path=webwork_question_path,
                    active=True
                )
                db.add(question)
                db.flush()
                count = EnrollmentService._create_grades_for_question(db, question.id)
        except IntegrityError as e:
            raise translate_integrity_error(
                e, CourseWWTopicQuestion.__table__, QUESTION_CONFLICTS,
                not_found_message="Could not create the question because the given topic does not exist",
            ) from e

        db.refresh(question)
        logger.info(f"新建题目 {question.id} (topic={topic_id}, number={question.problem_number})，补齐成绩 {count} 条")
        return question

    @staticmethod
    def update_question(
        db: Session,
        question_id: int,
        problem_number: Optional[int] = None,
        topic_id: Optional[int] = None,
        weight: Optional[float] = None,
        max_attempts: Optional[int] = None,
        hidden: Optional[bool] = None,
        optional: Optional[bool] = None,
        webwork_question_path: Optional[str] = None
    ) -> CourseWWTopicQuestion:
        """
        修改题目

        topic_id 指定时移动到同一课程的另一个主题，未给题号时放到末尾。

        Raises:
            NotFoundError: 题目或目标主题不存在
            ValidationFailure: 目标主题不属于同一课程，或题号无效
        """
        try:
            with atomic(db):
                question = _get_active(db, CourseWWTopicQuestion, question_id, "Could not find the question to update")
                scope_before = question.course_topic_content_id
                scope_after = scope_before

                if topic_id is not None and topic_id != scope_before:
                    target_topic = _get_active(db, CourseTopicContent, topic_id, "Could not find the target topic")
                    if target_topic.unit.course_id != question.topic.unit.course_id:
                        raise ValidationFailure("A question can only be moved to a topic of the same course")
                    scope_after = topic_id

                if scope_after != scope_before or (
                    problem_number is not None and problem_number != question.problem_number
                ):
                    target = problem_number
                    if target is None:
                        target = OrderedSequenceService.next_order(db, QUESTION_SEQUENCE, scope_after)
                    OrderedSequenceService.relocate(
                        db, QUESTION_SEQUENCE, scope_before, scope_after, question.problem_number, target
                    )

                if weight is not None:
                    question.weight = weight
                if max_attempts is not None:
                    question.max_attempts = max_attempts
                if hidden is not None:
                    question.hidden = hidden
                if optional is not None:
                    question.optional = optional
                if webwork_question_path is not None:
                    question.webwork_question_path = webwork_question_path
                db.flush()
        except IntegrityError as e:
            raise translate_integrity_error(e, CourseWWTopicQuestion.__table__, QUESTION_CONFLICTS) from e

        db.refresh(question)
        return question

    @staticmethod
    def delete_question(db: Session, question_id: int) -> int:
        return SoftDeleteService.delete_question(db, question_id)
