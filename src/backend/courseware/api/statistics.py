"""
成绩与统计API
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from courseware.core.database import get_db
from courseware.services import StatisticsService

router = APIRouter(tags=["成绩统计"])


@router.get("/grades", response_model=List[dict])
def get_grades(
    course_id: Optional[int] = None,
    unit_id: Optional[int] = None,
    topic_id: Optional[int] = None,
    question_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """获取成绩（四个过滤条件必须且只能给一个）"""
    return StatisticsService.get_grades(
        db, course_id=course_id, unit_id=unit_id, topic_id=topic_id, question_id=question_id
    )


@router.get("/statistics/units", response_model=List[dict])
def get_statistics_on_units(course_id: Optional[int] = None, db: Session = Depends(get_db)):
    return StatisticsService.get_statistics_on_units(db, course_id=course_id)


@router.get("/statistics/topics", response_model=List[dict])
def get_statistics_on_topics(
    unit_id: Optional[int] = None,
    course_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return StatisticsService.get_statistics_on_topics(db, unit_id=unit_id, course_id=course_id)


@router.get("/statistics/questions", response_model=List[dict])
def get_statistics_on_questions(
    topic_id: Optional[int] = None,
    course_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    return StatisticsService.get_statistics_on_questions(db, topic_id=topic_id, course_id=course_id)
