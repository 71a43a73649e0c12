"""
个人覆盖服务
把学生个人的主题日期/题目次数覆盖叠加到原设置上，得到有效配置
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from courseware.core.database import atomic
from courseware.core.exceptions import NotFoundError
from courseware.models import (
    CourseTopicContent,
    CourseWWTopicQuestion,
    StudentTopicOverride,
    StudentTopicQuestionOverride,
    is_unlimited,
)

logger = logging.getLogger(__name__)

TOPIC_OVERRIDE_FIELDS = ("start_date", "end_date", "dead_date")
QUESTION_OVERRIDE_FIELDS = ("max_attempts",)


@dataclass
class EffectiveTopic:
    """叠加覆盖后的主题配置"""
    id: int
    start_date: datetime
    end_date: datetime
    dead_date: datetime
    partial_extend: bool = False
    override_id: Optional[int] = None


@dataclass
class EffectiveQuestion:
    """叠加覆盖后的题目配置"""
    id: int
    max_attempts: int
    weight: float = 1
    override_id: Optional[int] = None

    @property
    def unlimited_attempts(self) -> bool:
        return is_unlimited(self.max_attempts)


def apply_override(base, override, fields: Iterable[str]) -> Dict[str, object]:
    """
    覆盖中非空的字段替换原值，其余沿用原值

    Args:
        base: 原始主题/题目
        override: 覆盖记录（可为 None）
        fields: 可覆盖的字段

    Returns:
        dict: 字段 -> 有效值
    """
    values = {field: getattr(base, field) for field in fields}
    if override is not None:
        for field in fields:
            value = getattr(override, field)
            if value is not None:
                values[field] = value
    return values


def _single_active(overrides: list, label: str, entity_id: int, user_id: int):
    """
    只有一条启用的覆盖时才使用

    出现多条属于数据异常，记录告警并退回原设置，不做任意选择。
    """
    if len(overrides) > 1:
        logger.warning(
            f"{label} {entity_id} 对用户 {user_id} 存在 {len(overrides)} 条启用的覆盖，忽略覆盖使用原设置"
        )
        return None
    return overrides[0] if overrides else None


class OverrideService:
    """个人覆盖服务"""

    @staticmethod
    def find_topic_override(db: Session, topic_id: int, user_id: int) -> Optional[StudentTopicOverride]:
        overrides = db.query(StudentTopicOverride).filter(
            StudentTopicOverride.course_topic_content_id == topic_id,
            StudentTopicOverride.user_id == user_id,
            StudentTopicOverride.active == True
        ).all()
        return _single_active(overrides, "topic", topic_id, user_id)

    @staticmethod
    def find_question_override(db: Session, question_id: int, user_id: int) -> Optional[StudentTopicQuestionOverride]:
        overrides = db.query(StudentTopicQuestionOverride).filter(
            StudentTopicQuestionOverride.course_topic_question_id == question_id,
            StudentTopicQuestionOverride.user_id == user_id,
            StudentTopicQuestionOverride.active == True
        ).all()
        return _single_active(overrides, "question", question_id, user_id)

    @staticmethod
    def resolve_topic(db: Session, topic: CourseTopicContent, user_id: int) -> EffectiveTopic:
        """
        获取用户的有效主题配置

        Args:
            db: 数据库会话
            topic: 主题
            user_id: 用户ID

        Returns:
            EffectiveTopic: 有效配置
        """
        override = OverrideService.find_topic_override(db, topic.id, user_id)
        values = apply_override(topic, override, TOPIC_OVERRIDE_FIELDS)
        return EffectiveTopic(
            id=topic.id,
            partial_extend=bool(topic.partial_extend),
            override_id=override.id if override else None,
            **values
        )

    @staticmethod
    def resolve_question(db: Session, question: CourseWWTopicQuestion, user_id: int) -> EffectiveQuestion:
        """获取用户的有效题目配置"""
        override = OverrideService.find_question_override(db, question.id, user_id)
        values = apply_override(question, override, QUESTION_OVERRIDE_FIELDS)
        return EffectiveQuestion(
            id=question.id,
            weight=question.weight,
            override_id=override.id if override else None,
            **values
        )

    @staticmethod
    def extend_topic(
        db: Session,
        topic_id: int,
        user_id: int,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        dead_date: Optional[datetime] = None
    ) -> StudentTopicOverride:
        """
        为学生设置主题日期覆盖

        之前启用的覆盖会被停用，保证同一学生同一主题最多一条启用记录。

        Raises:
            NotFoundError: 主题不存在或已删除
        """
        with atomic(db):
            topic = db.query(CourseTopicContent).filter(
                CourseTopicContent.id == topic_id,
                CourseTopicContent.active == True
            ).first()
            if topic is None:
                raise NotFoundError("Could not find the topic to extend")

            db.query(StudentTopicOverride).filter(
                StudentTopicOverride.course_topic_content_id == topic_id,
                StudentTopicOverride.user_id == user_id,
                StudentTopicOverride.active == True
            ).update({StudentTopicOverride.active: False}, synchronize_session=False)

            override = StudentTopicOverride(
                course_topic_content_id=topic_id,
                user_id=user_id,
                start_date=start_date,
                end_date=end_date,
                dead_date=dead_date,
                active=True
            )
            db.add(override)
        db.refresh(override)
        return override

    @staticmethod
    def extend_question(
        db: Session,
        question_id: int,
        user_id: int,
        max_attempts: Optional[int] = None
    ) -> StudentTopicQuestionOverride:
        """
        为学生设置题目作答次数覆盖

        Raises:
            NotFoundError: 题目不存在或已删除
        """
        with atomic(db):
            question = db.query(CourseWWTopicQuestion).filter(
                CourseWWTopicQuestion.id == question_id,
                CourseWWTopicQuestion.active == True
            ).first()
            if question is None:
                raise NotFoundError("Could not find the question to extend")

            db.query(StudentTopicQuestionOverride).filter(
                StudentTopicQuestionOverride.course_topic_question_id == question_id,
                StudentTopicQuestionOverride.user_id == user_id,
                StudentTopicQuestionOverride.active == True
            ).update({StudentTopicQuestionOverride.active: False}, synchronize_session=False)

            override = StudentTopicQuestionOverride(
                course_topic_question_id=question_id,
                user_id=user_id,
                max_attempts=max_attempts,
                active=True
            )
            db.add(override)
        db.refresh(override)
        return override
