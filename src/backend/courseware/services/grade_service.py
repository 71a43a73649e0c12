"""
成绩服务
实现提交答案的计分状态机

状态：NEW（未作答）-> ATTEMPTED（已作答）-> MASTERED（满分）/ LOCKED（锁定）

计分规则（dead_date 之前，且历史最高分未满分）：
1. 已锁定或作答次数用完：所有计分字段不变，只记录作答
2. 否则 overall_best_score 取最大值，记录首次/最近一次得分，次数 +1：
   - end_date 之前：全额计分
   - end_date 到 dead_date 之间：部分计分 (score - legal_score) * 0.5 + legal_score
3. dead_date 之后：成绩不变，不记录作答
4. 成绩修改和作答记录在同一个事务中写入
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from courseware.core.clock import utcnow
from courseware.core.config import GradingConfig, get_grading_config
from courseware.core.database import atomic
from courseware.core.exceptions import CoursewareError, NotFoundError, WrappedError
from courseware.core.roles import Role, get_output_format_for_role, get_permission_for_role
from courseware.models import CourseWWTopicQuestion, StudentGrade, StudentWorkbook
from courseware.renderer import DEFAULT_PROBLEM_SEED, RendererClient, RendererResponse, clean_for_database
from courseware.services.override_service import EffectiveQuestion, EffectiveTopic, OverrideService

logger = logging.getLogger(__name__)

# 部分计分系数（固定策略）
PARTIAL_CREDIT_FACTOR = 0.5

# 表单中有这个字段才是计分提交，否则只是保存/预览
SUBMIT_ANSWERS_MARKER = "submitAnswers"

# 入库前去掉的渲染结果字段
RENDERED_MARKUP_FIELD = "renderedHTML"


@dataclass
class SubmitAnswerResult:
    """提交结果：成绩为空表示该学生没有这道题；作答记录为空表示未计分"""
    grade: Optional[StudentGrade]
    workbook: Optional[StudentWorkbook]


def is_answer_submission(submitted: Optional[Dict[str, Any]]) -> bool:
    """提交的表单是否带有计分标记"""
    if not submitted:
        return False
    form_data = submitted.get("form_data")
    if isinstance(form_data, dict) and form_data.get(SUBMIT_ANSWERS_MARKER):
        return True
    return bool(submitted.get(SUBMIT_ANSWERS_MARKER))


def strip_rendered_markup(submitted: Dict[str, Any]) -> Dict[str, Any]:
    """作答快照不保存渲染后的 HTML"""
    return {key: value for key, value in submitted.items() if key != RENDERED_MARKUP_FIELD}


def apply_attempt(
    grade: StudentGrade,
    score: float,
    topic: EffectiveTopic,
    question: EffectiveQuestion,
    now: datetime
) -> bool:
    """
    把一次作答的得分写入成绩（只改内存中的对象）

    不计次时成绩的任何字段都不修改。

    Args:
        grade: 成绩
        score: 本次得分 [0, 1]
        topic: 有效主题配置
        question: 有效题目配置
        now: 当前时间

    Returns:
        bool: 是否计入了一次作答（锁定、次数用尽或已过 dead_date 时为 False）
    """
    if grade.locked:
        return False
    if not question.unlimited_attempts and grade.num_attempts >= question.max_attempts:
        return False
    if now >= topic.dead_date:
        return False

    grade.overall_best_score = max(grade.overall_best_score, score)
    if grade.num_attempts == 0:
        grade.first_attempts = score
    grade.latest_attempts = score
    grade.num_attempts += 1

    if now < topic.end_date:
        # 全额计分
        grade.best_score = grade.overall_best_score
        grade.legal_score = grade.overall_best_score
        grade.partial_credit_best_score = grade.overall_best_score
        grade.effective_score = max(grade.overall_best_score, grade.effective_score)
    elif now < topic.dead_date:
        # 部分计分，以全额窗口的成绩为基准
        partial_credit_score = (score - grade.legal_score) * PARTIAL_CREDIT_FACTOR + grade.legal_score
        grade.partial_credit_best_score = max(partial_credit_score, grade.partial_credit_best_score)
        grade.best_score = grade.partial_credit_best_score
        grade.effective_score = max(partial_credit_score, grade.effective_score)
    return True


class GradeService:
    """成绩服务"""

    @staticmethod
    def get_grade(db: Session, user_id: int, question_id: int) -> Optional[StudentGrade]:
        return db.query(StudentGrade).filter(
            StudentGrade.user_id == user_id,
            StudentGrade.course_topic_question_id == question_id
        ).first()

    @staticmethod
    def submit_answer(
        db: Session,
        user_id: int,
        question_id: int,
        score: float,
        submitted: Dict[str, Any],
        now: Optional[datetime] = None,
        config: Optional[GradingConfig] = None
    ) -> SubmitAnswerResult:
        """
        提交答案并更新成绩

        Args:
            db: 数据库会话
            user_id: 用户ID
            question_id: 题目ID
            score: 渲染服务给出的得分 [0, 1]
            submitted: 提交的表单（含 form_data）
            now: 当前时间（默认 UTC 当前时间）
            config: 评分配置（默认读取环境变量）

        Returns:
            SubmitAnswerResult: 成绩和作答记录

        Raises:
            NotFoundError 等领域异常原样抛出，其他持久层异常包装为 WrappedError
        """
        now = now or utcnow()
        config = config or get_grading_config()

        try:
            with atomic(db):
                return GradeService._submit_answer(db, user_id, question_id, score, submitted, now, config)
        except CoursewareError:
            raise
        except SQLAlchemyError as e:
            raise WrappedError("Could not submit answer", e) from e

    @staticmethod
    def _submit_answer(
        db: Session,
        user_id: int,
        question_id: int,
        score: float,
        submitted: Dict[str, Any],
        now: datetime,
        config: GradingConfig
    ) -> SubmitAnswerResult:
        grade = GradeService.get_grade(db, user_id, question_id)
        if grade is None:
            # 没选课或没有这道题
            return SubmitAnswerResult(grade=None, workbook=None)

        question = grade.question
        if not question.active or not question.topic.active:
            raise NotFoundError("Could not find the question")

        if not is_answer_submission(submitted):
            return SubmitAnswerResult(grade=grade, workbook=None)

        topic = OverrideService.resolve_topic(db, question.topic, user_id)
        effective_question = OverrideService.resolve_question(db, question, user_id)

        # 答案开放后不再接受提交；dead_date 之后提交不计分也不记录
        solutions_shown = now >= topic.dead_date + config.show_solutions_delay
        if solutions_shown or now >= topic.dead_date or grade.overall_best_score == 1:
            return SubmitAnswerResult(grade=grade, workbook=None)

        counted = apply_attempt(grade, score, topic, effective_question, now)
        if not counted:
            logger.info(f"成绩 {grade.id} 已锁定或作答次数已用完，本次不计次")

        workbook = StudentWorkbook(
            student_grade_id=grade.id,
            user_id=user_id,
            course_topic_question_id=grade.course_topic_question_id,
            random_seed=grade.random_seed,
            submitted=strip_rendered_markup(submitted),
            result=score,
            time=now
        )
        db.add(workbook)
        db.flush()
        return SubmitAnswerResult(grade=grade, workbook=workbook)

    @staticmethod
    def submit_rendered_answer(
        db: Session,
        renderer: RendererClient,
        user_id: int,
        question_id: int,
        form_url: str,
        form_data: Dict[str, Any],
        role: Role = Role.STUDENT,
        now: Optional[datetime] = None,
        config: Optional[GradingConfig] = None
    ) -> tuple:
        """
        把学生表单交给渲染服务评分，再按得分提交

        Returns:
            tuple: (SubmitAnswerResult, RendererResponse)

        Raises:
            NotFoundError: 题目不存在，或渲染服务找不到题目路径
        """
        question = db.query(CourseWWTopicQuestion).filter(
            CourseWWTopicQuestion.id == question_id,
            CourseWWTopicQuestion.active == True
        ).first()
        if question is None:
            raise NotFoundError("Could not find the question")

        grade = GradeService.get_grade(db, user_id, question_id)
        seed = grade.random_seed if grade is not None else DEFAULT_PROBLEM_SEED
        permission_level = get_permission_for_role(role)

        rendered: RendererResponse = renderer.render(
            source_file_path=question.webwork_question_path,
            problem_seed=seed,
            form_url=form_url,
            form_data=form_data,
            output_format=get_output_format_for_role(role),
            permission_level=permission_level,
        )

        result = GradeService.submit_answer(
            db,
            user_id=user_id,
            question_id=question_id,
            score=rendered.problem_result.score,
            submitted=clean_for_database(rendered),
            now=now,
            config=config
        )
        return result, rendered
