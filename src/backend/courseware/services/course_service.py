"""
课程服务
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from courseware.core.clock import utcnow
from courseware.core.database import atomic
from courseware.core.exceptions import translate_integrity_error
from courseware.models import (
    Course,
    CourseUnitContent,
    CourseTopicContent,
    StudentEnrollment,
)

logger = logging.getLogger(__name__)


def _question_to_dict(question) -> dict:
    return {
        "id": question.id,
        "problem_number": question.problem_number,
        "weight": question.weight,
        "max_attempts": question.max_attempts,
        "hidden": question.hidden,
        "optional": question.optional,
        "webwork_question_path": question.webwork_question_path,
    }


def _topic_to_dict(topic, include_questions: bool = True) -> dict:
    result = {
        "id": topic.id,
        "unit_id": topic.course_unit_content_id,
        "name": topic.name,
        "content_order": topic.content_order,
        "start_date": topic.start_date.isoformat() if topic.start_date else None,
        "end_date": topic.end_date.isoformat() if topic.end_date else None,
        "dead_date": topic.dead_date.isoformat() if topic.dead_date else None,
        "partial_extend": topic.partial_extend,
    }
    if include_questions:
        questions = sorted(
            (q for q in topic.questions if q.active),
            key=lambda q: q.problem_number
        )
        result["questions"] = [_question_to_dict(q) for q in questions]
    return result


def course_to_dict(course: Course) -> dict:
    """课程基本信息"""
    return {
        "id": course.id,
        "name": course.name,
        "code": course.code,
        "start": course.start.isoformat() if course.start else None,
        "end": course.end.isoformat() if course.end else None,
        "instructor_id": course.instructor_id,
        "section_code": course.section_code,
        "semester_code": course.semester_code,
    }


class CourseService:
    """课程服务"""

    @staticmethod
    def create_course(
        db: Session,
        name: str,
        code: str,
        start: datetime,
        end: datetime,
        instructor_id: int,
        section_code: Optional[str] = None,
        semester_code: Optional[str] = None
    ) -> Course:
        """
        创建课程

        Raises:
            AlreadyExistsError: 课程代码已存在
            NotFoundError: 教师不存在
        """
        course = Course(
            name=name,
            code=code,
            start=start,
            end=end,
            instructor_id=instructor_id,
            section_code=section_code,
            semester_code=semester_code
        )
        try:
            with atomic(db):
                db.add(course)
        except IntegrityError as e:
            raise translate_integrity_error(
                e,
                Course.__table__,
                {("code",): "A course already exists with this course code"},
                not_found_message="Could not create the course since the given instructor does not exist",
            ) from e

        db.refresh(course)
        logger.info(f"创建课程: {course.code}")
        return course

    @staticmethod
    def get_course_by_id(db: Session, course_id: int) -> Optional[dict]:
        """
        获取课程及其内容树（单元 -> 主题 -> 题目）

        只包含启用的内容，各级按顺序号排序。

        Args:
            db: 数据库会话
            course_id: 课程ID

        Returns:
            Optional[dict]: 课程信息，不存在时返回 None
        """
        course = db.query(Course).options(
            selectinload(Course.units)
            .selectinload(CourseUnitContent.topics)
            .selectinload(CourseTopicContent.questions)
        ).filter(Course.id == course_id).first()

        if not course:
            return None

        result = course_to_dict(course)
        units = sorted((u for u in course.units if u.active), key=lambda u: u.content_order)
        result["units"] = [
            {
                "id": unit.id,
                "name": unit.name,
                "content_order": unit.content_order,
                "topics": [
                    _topic_to_dict(topic)
                    for topic in sorted((t for t in unit.topics if t.active), key=lambda t: t.content_order)
                ],
            }
            for unit in units
        ]
        return result

    @staticmethod
    def get_course_by_code(db: Session, code: str) -> Optional[Course]:
        return db.query(Course).filter(Course.code == code).first()

    @staticmethod
    def list_courses(
        db: Session,
        instructor_id: Optional[int] = None,
        enrolled_user_id: Optional[int] = None
    ) -> List[Course]:
        """
        获取课程列表

        Args:
            db: 数据库会话
            instructor_id: 只返回该教师的课程
            enrolled_user_id: 只返回该学生在读的课程

        Returns:
            List[Course]: 课程列表
        """
        query = db.query(Course)

        if instructor_id is not None:
            query = query.filter(Course.instructor_id == instructor_id)

        if enrolled_user_id is not None:
            query = query.join(StudentEnrollment, StudentEnrollment.course_id == Course.id).filter(
                StudentEnrollment.user_id == enrolled_user_id,
                StudentEnrollment.drop_date.is_(None)
            )

        return query.order_by(Course.start.desc(), Course.id.asc()).all()

    @staticmethod
    def get_topics(
        db: Session,
        course_id: Optional[int] = None,
        is_open: Optional[bool] = None,
        now: Optional[datetime] = None
    ) -> List[dict]:
        """
        获取主题列表

        Args:
            db: 数据库会话
            course_id: 课程ID（可选）
            is_open: True 只返回开放中的主题（start_date <= now <= dead_date）
            now: 当前时间

        Returns:
            List[dict]: 主题（不含题目）
        """
        query = db.query(CourseTopicContent).join(
            CourseUnitContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
        ).filter(
            CourseTopicContent.active == True,
            CourseUnitContent.active == True
        )

        if course_id is not None:
            query = query.filter(CourseUnitContent.course_id == course_id)

        if is_open:
            now = now or utcnow()
            query = query.filter(
                CourseTopicContent.start_date <= now,
                CourseTopicContent.dead_date >= now
            )

        topics = query.order_by(
            CourseUnitContent.content_order.asc(),
            CourseTopicContent.content_order.asc()
        ).all()
        return [_topic_to_dict(topic, include_questions=False) for topic in topics]
