"""
题目渲染与作答API
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from courseware.core.clock import to_naive_utc
from courseware.core.database import get_db
from courseware.core.roles import Role
from courseware.renderer import RendererClient, clean_for_response
from courseware.services import GradeService, OverrideService, QuestionService

router = APIRouter(tags=["题目作答"])


def get_renderer() -> RendererClient:
    """渲染服务客户端依赖注入"""
    return RendererClient()


class RenderRequest(BaseModel):
    """渲染题目请求"""
    user_id: int
    form_url: str
    role: Role = Role.STUDENT


class SubmitRequest(BaseModel):
    """提交答案请求（表单交给渲染服务评分）"""
    user_id: int
    form_url: str
    form_data: Dict[str, Any]
    role: Role = Role.STUDENT


class TopicExtensionRequest(BaseModel):
    """主题延期请求"""
    user_id: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    dead_date: Optional[datetime] = None

    @field_validator("start_date", "end_date", "dead_date")
    @classmethod
    def _to_naive_utc(cls, value):
        return to_naive_utc(value)


class QuestionExtensionRequest(BaseModel):
    """题目加次数请求"""
    user_id: int
    max_attempts: Optional[int] = Field(None, description="-1 表示不限次数")


def _grade_to_dict(grade) -> Optional[dict]:
    if grade is None:
        return None
    return {
        "id": grade.id,
        "user_id": grade.user_id,
        "question_id": grade.course_topic_question_id,
        "num_attempts": grade.num_attempts,
        "best_score": grade.best_score,
        "overall_best_score": grade.overall_best_score,
        "partial_credit_best_score": grade.partial_credit_best_score,
        "effective_score": grade.effective_score,
        "legal_score": grade.legal_score,
        "locked": grade.locked,
        "state": grade.state.value,
    }


@router.get("/topics/{topic_id}/questions", response_model=List[dict])
def get_questions(topic_id: int, user_id: Optional[int] = None, db: Session = Depends(get_db)):
    """获取主题下的题目（可附带学生成绩）"""
    return QuestionService.get_questions(db, topic_id, user_id)


@router.post("/questions/{question_id}/render", response_model=dict)
def render_question(
    question_id: int,
    request: RenderRequest,
    db: Session = Depends(get_db),
    renderer: RendererClient = Depends(get_renderer)
):
    """按学生的随机种子渲染题目"""
    return QuestionService.get_question(
        db, renderer, request.user_id, question_id, request.form_url, request.role
    )


@router.post("/questions/{question_id}/submit", response_model=dict)
def submit_answer(
    question_id: int,
    request: SubmitRequest,
    db: Session = Depends(get_db),
    renderer: RendererClient = Depends(get_renderer)
):
    """
    提交答案

    Returns:
        dict: 渲染结果、更新后的成绩、是否写入了作答记录
    """
    result, rendered = GradeService.submit_rendered_answer(
        db,
        renderer,
        user_id=request.user_id,
        question_id=question_id,
        form_url=request.form_url,
        form_data=request.form_data,
        role=request.role
    )
    response = clean_for_response(rendered)
    response["grade"] = _grade_to_dict(result.grade)
    response["workbook_id"] = result.workbook.id if result.workbook else None
    return response


@router.post("/topics/{topic_id}/extensions", response_model=dict)
def extend_topic(topic_id: int, request: TopicExtensionRequest, db: Session = Depends(get_db)):
    """为学生设置主题日期覆盖"""
    override = OverrideService.extend_topic(db, topic_id, **request.model_dump())
    return {"id": override.id, "topic_id": topic_id, "user_id": override.user_id}


@router.post("/questions/{question_id}/extensions", response_model=dict)
def extend_question(question_id: int, request: QuestionExtensionRequest, db: Session = Depends(get_db)):
    """为学生设置题目作答次数覆盖"""
    override = OverrideService.extend_question(db, question_id, **request.model_dump())
    return {"id": override.id, "question_id": question_id, "user_id": override.user_id}
