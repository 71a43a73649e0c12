"""
成绩统计服务
按学生汇总成绩，以及按单元/主题/题目统计完成情况

只统计启用的单元、主题和题目。
"""
import logging
from typing import List, Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session

from courseware.core.exceptions import ValidationFailure
from courseware.models import (
    User,
    CourseUnitContent,
    CourseTopicContent,
    CourseWWTopicQuestion,
    StudentGrade,
)

logger = logging.getLogger(__name__)

# 达到该分数视为完成（掌握）
MASTERY_SCORE = 1


def _grade_aggregates():
    """平均作答次数、平均最高分、成绩总数、完成数"""
    return (
        func.avg(StudentGrade.num_attempts),
        func.avg(StudentGrade.best_score),
        func.count(StudentGrade.id),
        func.count(case((StudentGrade.best_score >= MASTERY_SCORE, StudentGrade.id))),
    )


def _stat_row(entity_id: int, name: str, average_attempts, average_score, total, completed) -> dict:
    return {
        "id": entity_id,
        "name": name,
        "average_attempted_count": float(average_attempts) if average_attempts is not None else None,
        "average_score": float(average_score) if average_score is not None else None,
        "total_grades": total,
        "completed_count": completed,
        "completion_percent": completed / total if total else None,
    }


class StatisticsService:
    """成绩统计服务"""

    @staticmethod
    def get_grades(
        db: Session,
        course_id: Optional[int] = None,
        unit_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        question_id: Optional[int] = None
    ) -> List[dict]:
        """
        获取成绩

        四个过滤条件必须且只能设置一个：
        - question_id: 返回该题每个学生的成绩
        - 其他: 按学生汇总（平均分、未作答/已掌握/进行中的题目数）

        Raises:
            ValidationFailure: 过滤条件不是恰好一个
        """
        filters = [course_id, unit_id, topic_id, question_id]
        set_count = sum(1 for value in filters if value is not None)
        if set_count != 1:
            raise ValidationFailure(f"One filter must be set but found {set_count}")

        if question_id is not None:
            rows = db.query(
                StudentGrade.id,
                StudentGrade.best_score,
                StudentGrade.num_attempts,
                User.id,
                User.first_name,
                User.last_name
            ).join(
                User, StudentGrade.user_id == User.id
            ).filter(
                StudentGrade.course_topic_question_id == question_id
            ).order_by(User.id.asc()).all()
            return [
                {
                    "id": grade_id,
                    "best_score": best_score,
                    "num_attempts": num_attempts,
                    "user": {"id": user_id, "first_name": first_name, "last_name": last_name},
                }
                for grade_id, best_score, num_attempts, user_id, first_name, last_name in rows
            ]

        total = func.count(StudentGrade.id)
        pending = func.count(case((StudentGrade.num_attempts == 0, StudentGrade.id)))
        mastered = func.count(case((StudentGrade.best_score >= MASTERY_SCORE, StudentGrade.id)))

        query = db.query(
            User.id,
            User.first_name,
            User.last_name,
            func.avg(StudentGrade.best_score),
            pending,
            mastered,
            total
        ).select_from(StudentGrade).join(
            User, StudentGrade.user_id == User.id
        ).join(
            CourseWWTopicQuestion, StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id
        ).join(
            CourseTopicContent, CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id
        ).join(
            CourseUnitContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
        ).filter(
            CourseWWTopicQuestion.active == True,
            CourseTopicContent.active == True,
            CourseUnitContent.active == True
        )

        if course_id is not None:
            query = query.filter(CourseUnitContent.course_id == course_id)
        elif unit_id is not None:
            query = query.filter(CourseUnitContent.id == unit_id)
        else:
            query = query.filter(CourseTopicContent.id == topic_id)

        rows = query.group_by(User.id, User.first_name, User.last_name).order_by(User.id.asc()).all()
        return [
            {
                "user": {"id": user_id, "first_name": first_name, "last_name": last_name},
                "average": float(average) if average is not None else None,
                "pending_problem_count": pending_count,
                "mastered_problem_count": mastered_count,
                "in_progress_problem_count": total_count - pending_count - mastered_count,
            }
            for user_id, first_name, last_name, average, pending_count, mastered_count, total_count in rows
        ]

    @staticmethod
    def get_statistics_on_units(db: Session, course_id: Optional[int] = None) -> List[dict]:
        """
        按单元统计

        Returns:
            List[dict]: 每个单元的平均作答次数、平均分、成绩数、完成数、完成率（无成绩时为 None）
        """
        query = db.query(
            CourseUnitContent.id,
            CourseUnitContent.name,
            *_grade_aggregates()
        ).outerjoin(
            CourseTopicContent,
            and_(
                CourseTopicContent.course_unit_content_id == CourseUnitContent.id,
                CourseTopicContent.active == True
            )
        ).outerjoin(
            CourseWWTopicQuestion,
            and_(
                CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id,
                CourseWWTopicQuestion.active == True
            )
        ).outerjoin(
            StudentGrade, StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id
        ).filter(CourseUnitContent.active == True)

        if course_id is not None:
            query = query.filter(CourseUnitContent.course_id == course_id)

        rows = query.group_by(
            CourseUnitContent.id,
            CourseUnitContent.name,
            CourseUnitContent.course_id,
            CourseUnitContent.content_order
        ).order_by(
            CourseUnitContent.course_id.asc(),
            CourseUnitContent.content_order.asc()
        ).all()
        return [_stat_row(*row) for row in rows]

    @staticmethod
    def get_statistics_on_topics(
        db: Session,
        unit_id: Optional[int] = None,
        course_id: Optional[int] = None
    ) -> List[dict]:
        """按主题统计"""
        query = db.query(
            CourseTopicContent.id,
            CourseTopicContent.name,
            *_grade_aggregates()
        ).join(
            CourseUnitContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
        ).outerjoin(
            CourseWWTopicQuestion,
            and_(
                CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id,
                CourseWWTopicQuestion.active == True
            )
        ).outerjoin(
            StudentGrade, StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id
        ).filter(
            CourseTopicContent.active == True,
            CourseUnitContent.active == True
        )

        if unit_id is not None:
            query = query.filter(CourseTopicContent.course_unit_content_id == unit_id)
        if course_id is not None:
            query = query.filter(CourseUnitContent.course_id == course_id)

        rows = query.group_by(
            CourseTopicContent.id,
            CourseTopicContent.name,
            CourseUnitContent.content_order,
            CourseTopicContent.content_order
        ).order_by(
            CourseUnitContent.content_order.asc(),
            CourseTopicContent.content_order.asc()
        ).all()
        return [_stat_row(*row) for row in rows]

    @staticmethod
    def get_statistics_on_questions(
        db: Session,
        topic_id: Optional[int] = None,
        course_id: Optional[int] = None
    ) -> List[dict]:
        """按题目统计，题目名称为 "Problem <题号>" """
        query = db.query(
            CourseWWTopicQuestion.id,
            CourseWWTopicQuestion.problem_number,
            *_grade_aggregates()
        ).join(
            CourseTopicContent, CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id
        ).join(
            CourseUnitContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
        ).outerjoin(
            StudentGrade, StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id
        ).filter(
            CourseWWTopicQuestion.active == True,
            CourseTopicContent.active == True,
            CourseUnitContent.active == True
        )

        if topic_id is not None:
            query = query.filter(CourseWWTopicQuestion.course_topic_content_id == topic_id)
        if course_id is not None:
            query = query.filter(CourseUnitContent.course_id == course_id)

        rows = query.group_by(
            CourseWWTopicQuestion.id,
            CourseWWTopicQuestion.problem_number,
            CourseUnitContent.content_order,
            CourseTopicContent.content_order
        ).order_by(
            CourseUnitContent.content_order.asc(),
            CourseTopicContent.content_order.asc(),
            CourseWWTopicQuestion.problem_number.asc()
        ).all()
        return [
            _stat_row(question_id, f"Problem {problem_number}", *aggregates)
            for question_id, problem_number, *aggregates in rows
        ]
