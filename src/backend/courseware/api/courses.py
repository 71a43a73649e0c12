"""
课程与选课API
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from courseware.core.clock import to_naive_utc
from courseware.core.database import get_db
from courseware.services import CourseService, EnrollmentService
from courseware.services.course_service import course_to_dict

router = APIRouter(prefix="/courses", tags=["课程管理"])


class CourseCreateRequest(BaseModel):
    """创建课程请求"""
    name: str
    code: str
    start: datetime
    end: datetime
    instructor_id: int
    section_code: Optional[str] = None
    semester_code: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def _to_naive_utc(cls, value):
        return to_naive_utc(value)


class EnrollRequest(BaseModel):
    """选课请求"""
    user_id: int


class EnrollByCodeRequest(BaseModel):
    """按选课码选课请求"""
    code: str
    user_id: int


def _enrollment_to_dict(enrollment) -> dict:
    return {
        "id": enrollment.id,
        "user_id": enrollment.user_id,
        "course_id": enrollment.course_id,
        "enroll_date": enrollment.enroll_date.isoformat() if enrollment.enroll_date else None,
        "drop_date": enrollment.drop_date.isoformat() if enrollment.drop_date else None,
    }


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
def create_course(request: CourseCreateRequest, db: Session = Depends(get_db)):
    """创建课程"""
    course = CourseService.create_course(db, **request.model_dump())
    return course_to_dict(course)


@router.get("", response_model=List[dict])
def list_courses(
    instructor_id: Optional[int] = None,
    enrolled_user_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """
    获取课程列表

    Args:
        instructor_id: 教师ID（可选）
        enrolled_user_id: 在读学生ID（可选）
    """
    courses = CourseService.list_courses(db, instructor_id=instructor_id, enrolled_user_id=enrolled_user_id)
    return [course_to_dict(c) for c in courses]


@router.get("/code/{code}", response_model=dict)
def get_course_by_code(code: str, db: Session = Depends(get_db)):
    """根据选课码获取课程"""
    course = CourseService.get_course_by_code(db, code)
    if not course:
        raise HTTPException(status_code=404, detail="课程不存在")
    return course_to_dict(course)


@router.post("/enroll", response_model=dict, status_code=status.HTTP_201_CREATED)
def enroll_by_code(request: EnrollByCodeRequest, db: Session = Depends(get_db)):
    """按选课码选课"""
    enrollment = EnrollmentService.enroll_by_code(db, request.code, request.user_id)
    return _enrollment_to_dict(enrollment)


@router.get("/{course_id}", response_model=dict)
def get_course(course_id: int, db: Session = Depends(get_db)):
    """获取课程及其内容树"""
    course = CourseService.get_course_by_id(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="课程不存在")
    return course


@router.get("/{course_id}/topics", response_model=List[dict])
def get_topics(course_id: int, is_open: Optional[bool] = None, db: Session = Depends(get_db)):
    """获取课程主题列表（is_open=true 只返回开放中的主题）"""
    return CourseService.get_topics(db, course_id=course_id, is_open=is_open)


@router.post("/{course_id}/enroll", response_model=dict, status_code=status.HTTP_201_CREATED)
def enroll(course_id: int, request: EnrollRequest, db: Session = Depends(get_db)):
    """选课（同时补齐成绩）"""
    enrollment = EnrollmentService.enroll(db, course_id, request.user_id)
    return _enrollment_to_dict(enrollment)


@router.delete("/{course_id}/enroll/{user_id}", response_model=dict)
def drop_enrollment(course_id: int, user_id: int, db: Session = Depends(get_db)):
    """退课"""
    enrollment = EnrollmentService.drop_enrollment(db, course_id, user_id)
    return _enrollment_to_dict(enrollment)
