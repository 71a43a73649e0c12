"""
选课模型
drop_date 非空表示已退课
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class StudentEnrollment(Base):
    """学生选课记录（同一用户同一课程最多一条未退课记录）"""
    __tablename__ = "student_enrollment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("course.id"), nullable=False, index=True)
    enroll_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    drop_date = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            "student_enrollment--user_id-course_id",
            "user_id", "course_id",
            unique=True,
            sqlite_where=text("drop_date IS NULL"),
            postgresql_where=text("drop_date IS NULL"),
        ),
    )

    # 关系
    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")

    @property
    def is_active(self) -> bool:
        return self.drop_date is None

    def __repr__(self):
        return f"<Enrollment(id={self.id} user={self.user_id} course={self.course_id} dropped={self.drop_date is not None})>"
