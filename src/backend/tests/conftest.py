"""
Pytest 配置和通用 Fixtures

- 每个测试一个独立的内存 SQLite 数据库（打开外键检查）
- Factory: 快速创建用户/课程/单元/主题/题目/选课
- 渲染服务响应样例
"""
import os
import sys
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courseware.core.config import GradingConfig
from courseware.core.database import enable_sqlite_foreign_keys
from courseware.models import (
    Base,
    User,
    Course,
    CourseUnitContent,
    CourseTopicContent,
    CourseWWTopicQuestion,
    UNLIMITED_ATTEMPTS,
)
from courseware.services.enrollment_service import EnrollmentService

# 测试中的"当前时间"
NOW = datetime(2026, 3, 2, 12, 0, 0)


# ==================== 数据库 ====================

@pytest.fixture
def engine():
    """内存数据库，所有连接共享同一个库"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def grading_config():
    return GradingConfig(show_solutions_delay=timedelta(days=7))


# ==================== Factory ====================

class Factory:
    """直接写库创建测试数据（题目不补齐成绩，需要时走 ContentService）"""

    def __init__(self, db):
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def user(self, role: str = "student", first_name: str = "Test") -> User:
        n = self._next()
        user = User(first_name=first_name, last_name=f"User{n}", email=f"user{n}@example.com", role=role)
        self.db.add(user)
        self.db.commit()
        return user

    def course(self, instructor: Optional[User] = None, code: Optional[str] = None) -> Course:
        instructor = instructor or self.user(role="professor")
        n = self._next()
        course = Course(
            name=f"Course {n}",
            code=code or f"CODE{n}",
            start=NOW - timedelta(days=30),
            end=NOW + timedelta(days=90),
            instructor_id=instructor.id,
        )
        self.db.add(course)
        self.db.commit()
        return course

    def unit(self, course: Course, order: int, name: Optional[str] = None) -> CourseUnitContent:
        unit = CourseUnitContent(course_id=course.id, name=name or f"Unit {order}", content_order=order)
        self.db.add(unit)
        self.db.commit()
        return unit

    def topic(
        self,
        unit: CourseUnitContent,
        order: int,
        name: Optional[str] = None,
        start_date: datetime = NOW - timedelta(days=10),
        end_date: datetime = NOW + timedelta(days=5),
        dead_date: datetime = NOW + timedelta(days=10),
    ) -> CourseTopicContent:
        topic = CourseTopicContent(
            course_unit_content_id=unit.id,
            name=name or f"Topic {order}",
            content_order=order,
            start_date=start_date,
            end_date=end_date,
            dead_date=dead_date,
        )
        self.db.add(topic)
        self.db.commit()
        return topic

    def question(
        self,
        topic: CourseTopicContent,
        number: int,
        max_attempts: int = UNLIMITED_ATTEMPTS,
        path: str = "Library/test/problem.pg",
    ) -> CourseWWTopicQuestion:
        question = CourseWWTopicQuestion(
            course_topic_content_id=topic.id,
            problem_number=number,
            max_attempts=max_attempts,
            webwork_question_path=path,
        )
        self.db.add(question)
        self.db.commit()
        return question

    def enroll(self, course: Course, user: User):
        """选课并补齐成绩"""
        return EnrollmentService.enroll(self.db, course.id, user.id)


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def single_question(factory):
    """一门课一个单元一个主题一道题，一个在读学生"""
    course = factory.course()
    unit = factory.unit(course, 1)
    topic = factory.topic(unit, 1)
    question = factory.question(topic, 1)
    student = factory.user()
    factory.enroll(course, student)
    return {
        "course": course,
        "unit": unit,
        "topic": topic,
        "question": question,
        "student": student,
    }


# ==================== 渲染服务 ====================

def make_renderer_payload(score: float = 1.0, form_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """渲染服务的典型 JSON 响应"""
    return {
        "answers": {
            "AnSwEr0001": {
                "_filter_name": "dereference_array_ans",
                "correct_ans": "4",
                "original_student_ans": "4",
                "score": score,
                "student_ans": 4,
                "entry_type": None,
            }
        },
        "debug": {
            "debug": [],
            "internal": [],
            "perl_warn": "",
            "pg_warn": [],
        },
        "flags": {
            "ANSWER_ENTRY_ORDER": ["AnSwEr0001"],
            "KEPT_EXTRA_ANSWERS": ["AnSwEr0001"],
            "showHintLimit": -1,
            "showPartialCorrectAnswers": 1,
            "solutionExists": 0,
            "hintExists": 0,
        },
        "form_data": form_data if form_data is not None else {"AnSwEr0001": "4", "submitAnswers": "Submit"},
        "problem_result": {
            "errors": "",
            "msg": "",
            "score": score,
            "type": "avg_problem_grader",
        },
        "renderedHTML": "<div class='problem'>2 + 2 = ?</div>",
    }
