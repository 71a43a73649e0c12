"""
课程内容管理API
单元、主题、题目的增删改
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from courseware.core.clock import to_naive_utc
from courseware.core.database import get_db
from courseware.models import UNLIMITED_ATTEMPTS
from courseware.services import ContentService

router = APIRouter(tags=["内容管理"])


class UnitCreateRequest(BaseModel):
    """创建单元请求"""
    course_id: int
    name: str
    content_order: Optional[int] = None


class UnitUpdateRequest(BaseModel):
    """修改单元请求"""
    name: Optional[str] = None
    content_order: Optional[int] = None


class TopicCreateRequest(BaseModel):
    """创建主题请求"""
    unit_id: int
    name: str
    start_date: datetime
    end_date: datetime
    dead_date: datetime
    content_order: Optional[int] = None
    partial_extend: bool = False

    @field_validator("start_date", "end_date", "dead_date")
    @classmethod
    def _to_naive_utc(cls, value):
        return to_naive_utc(value)


class TopicUpdateRequest(BaseModel):
    """修改主题请求（unit_id 表示移动到另一个单元）"""
    name: Optional[str] = None
    content_order: Optional[int] = None
    unit_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    dead_date: Optional[datetime] = None
    partial_extend: Optional[bool] = None

    @field_validator("start_date", "end_date", "dead_date")
    @classmethod
    def _to_naive_utc(cls, value):
        return to_naive_utc(value)


class QuestionCreateRequest(BaseModel):
    """新建题目请求"""
    topic_id: int
    webwork_question_path: str
    problem_number: Optional[int] = None
    weight: float = 1
    max_attempts: int = UNLIMITED_ATTEMPTS
    hidden: bool = False
    optional: bool = False


class QuestionUpdateRequest(BaseModel):
    """修改题目请求（topic_id 表示移动到另一个主题）"""
    problem_number: Optional[int] = None
    topic_id: Optional[int] = None
    weight: Optional[float] = None
    max_attempts: Optional[int] = None
    hidden: Optional[bool] = None
    optional: Optional[bool] = None
    webwork_question_path: Optional[str] = None


def _unit_to_dict(unit) -> dict:
    return {
        "id": unit.id,
        "course_id": unit.course_id,
        "name": unit.name,
        "content_order": unit.content_order,
    }


def _topic_to_dict(topic) -> dict:
    return {
        "id": topic.id,
        "unit_id": topic.course_unit_content_id,
        "name": topic.name,
        "content_order": topic.content_order,
        "start_date": topic.start_date.isoformat(),
        "end_date": topic.end_date.isoformat(),
        "dead_date": topic.dead_date.isoformat(),
        "partial_extend": topic.partial_extend,
    }


def _question_to_dict(question) -> dict:
    return {
        "id": question.id,
        "topic_id": question.course_topic_content_id,
        "problem_number": question.problem_number,
        "weight": question.weight,
        "max_attempts": question.max_attempts,
        "hidden": question.hidden,
        "optional": question.optional,
        "webwork_question_path": question.webwork_question_path,
    }


# ========== 单元 ==========

@router.post("/units", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_unit(request: UnitCreateRequest, db: Session = Depends(get_db)):
    unit = ContentService.create_unit(db, request.course_id, request.name, request.content_order)
    return _unit_to_dict(unit)


@router.put("/units/{unit_id}", response_model=dict)
def update_unit(unit_id: int, request: UnitUpdateRequest, db: Session = Depends(get_db)):
    unit = ContentService.update_unit(db, unit_id, **request.model_dump())
    return _unit_to_dict(unit)


@router.delete("/units/{unit_id}", response_model=dict)
def delete_unit(unit_id: int, db: Session = Depends(get_db)):
    """软删除单元（级联主题和题目）"""
    return {"deleted": ContentService.delete_unit(db, unit_id)}


# ========== 主题 ==========

@router.post("/topics", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_topic(request: TopicCreateRequest, db: Session = Depends(get_db)):
    topic = ContentService.create_topic(db, **request.model_dump())
    return _topic_to_dict(topic)


@router.put("/topics/{topic_id}", response_model=dict)
def update_topic(topic_id: int, request: TopicUpdateRequest, db: Session = Depends(get_db)):
    topic = ContentService.update_topic(db, topic_id, **request.model_dump())
    return _topic_to_dict(topic)


@router.delete("/topics/{topic_id}", response_model=dict)
def delete_topic(topic_id: int, db: Session = Depends(get_db)):
    """软删除主题（级联题目）"""
    return {"deleted": ContentService.delete_topic(db, topic_id)}


# ========== 题目 ==========

@router.post("/questions", response_model=dict, status_code=status.HTTP_201_CREATED)
def add_question(request: QuestionCreateRequest, db: Session = Depends(get_db)):
    """新建题目（同时为在读学生补齐成绩）"""
    question = ContentService.add_question(db, **request.model_dump())
    return _question_to_dict(question)


@router.put("/questions/{question_id}", response_model=dict)
def update_question(question_id: int, request: QuestionUpdateRequest, db: Session = Depends(get_db)):
    question = ContentService.update_question(db, question_id, **request.model_dump())
    return _question_to_dict(question)


@router.delete("/questions/{question_id}", response_model=dict)
def delete_question(question_id: int, db: Session = Depends(get_db)):
    return {"deleted": ContentService.delete_question(db, question_id)}
