"""
题目服务
按学生的固定随机种子渲染题目
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from courseware.core.exceptions import NotFoundError
from courseware.core.roles import (
    Role,
    get_output_format_for_permission,
    get_permission_for_role,
    shows_solutions,
)
from courseware.models import CourseWWTopicQuestion, StudentGrade
from courseware.renderer import DEFAULT_PROBLEM_SEED, RendererClient, clean_for_response

logger = logging.getLogger(__name__)


class QuestionService:
    """题目服务"""

    @staticmethod
    def get_questions(db: Session, topic_id: int, user_id: Optional[int] = None) -> List[dict]:
        """
        获取主题下的题目（按题号排序）

        Args:
            db: 数据库会话
            topic_id: 主题ID
            user_id: 用户ID（可选，附带该学生的成绩）

        Returns:
            List[dict]: 题目列表
        """
        questions = db.query(CourseWWTopicQuestion).filter(
            CourseWWTopicQuestion.course_topic_content_id == topic_id,
            CourseWWTopicQuestion.active == True
        ).order_by(CourseWWTopicQuestion.problem_number.asc()).all()

        grades = {}
        if user_id is not None and questions:
            rows = db.query(StudentGrade).filter(
                StudentGrade.user_id == user_id,
                StudentGrade.course_topic_question_id.in_([q.id for q in questions])
            ).all()
            grades = {grade.course_topic_question_id: grade for grade in rows}

        result = []
        for question in questions:
            item = {
                "id": question.id,
                "problem_number": question.problem_number,
                "weight": question.weight,
                "max_attempts": question.max_attempts,
                "hidden": question.hidden,
                "optional": question.optional,
            }
            grade = grades.get(question.id)
            if grade is not None:
                item["grade"] = {
                    "id": grade.id,
                    "num_attempts": grade.num_attempts,
                    "best_score": grade.best_score,
                    "effective_score": grade.effective_score,
                    "state": grade.state.value,
                }
            result.append(item)
        return result

    @staticmethod
    def get_question(
        db: Session,
        renderer: RendererClient,
        user_id: int,
        question_id: int,
        form_url: str,
        role: Role = Role.STUDENT,
        form_data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        渲染一道题

        学生始终看到同一个题目变体（成绩中的随机种子）；
        没有成绩时（如教师预览）使用固定种子。

        Returns:
            dict: {"question_id", "seed", "renderedHTML"}

        Raises:
            NotFoundError: 题目不存在，或渲染服务找不到题目路径
        """
        question = db.query(CourseWWTopicQuestion).filter(
            CourseWWTopicQuestion.id == question_id,
            CourseWWTopicQuestion.active == True
        ).first()
        if question is None:
            raise NotFoundError("Could not find the question")

        grade = db.query(StudentGrade).filter(
            StudentGrade.user_id == user_id,
            StudentGrade.course_topic_question_id == question_id
        ).first()
        seed = grade.random_seed if grade is not None else DEFAULT_PROBLEM_SEED

        permission_level = get_permission_for_role(role)
        rendered = renderer.render(
            source_file_path=question.webwork_question_path,
            problem_seed=seed,
            form_url=form_url,
            form_data=form_data,
            output_format=get_output_format_for_permission(permission_level),
            permission_level=permission_level,
            show_solutions=shows_solutions(role),
        )

        result = {"question_id": question.id, "seed": seed}
        result.update(clean_for_response(rendered))
        return result
