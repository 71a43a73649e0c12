"""
Models package
Export all database models
"""

from .base import Base
from .user import User
from .course import Course
from .unit import CourseUnitContent
from .topic import CourseTopicContent
from .question import CourseWWTopicQuestion, UNLIMITED_ATTEMPTS, is_unlimited
from .enrollment import StudentEnrollment
from .grade import StudentGrade, GradeState
from .workbook import StudentWorkbook
from .override import StudentTopicOverride, StudentTopicQuestionOverride

__all__ = [
    "Base",
    "User",
    "Course",
    "CourseUnitContent",
    "CourseTopicContent",
    "CourseWWTopicQuestion",
    "UNLIMITED_ATTEMPTS",
    "is_unlimited",
    "StudentEnrollment",
    "StudentGrade",
    "GradeState",
    "StudentWorkbook",
    "StudentTopicOverride",
    "StudentTopicQuestionOverride",
]


def init_db(bind=None):
    """初始化数据库"""
    if bind is None:
        from ..core.database import engine as bind

    # 创建所有表
    Base.metadata.create_all(bind=bind)
    print("✅ Database tables created successfully")


def drop_all(bind=None):
    """删除所有表（仅开发测试用）"""
    if bind is None:
        from ..core.database import engine as bind

    # 删除所有表
    Base.metadata.drop_all(bind=bind)
    print("⚠️  All tables dropped")
