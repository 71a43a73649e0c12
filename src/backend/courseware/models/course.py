"""
课程模型
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class Course(Base):
    """课程模型"""
    __tablename__ = "course"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=False)  # 选课码，全局唯一
    start = Column(DateTime, nullable=False)
    end = Column(DateTime, nullable=False)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    section_code = Column(String(50), nullable=True)
    semester_code = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("code", name="course--code"),
    )

    # 关系
    instructor = relationship("User")
    units = relationship("CourseUnitContent", back_populates="course")
    enrollments = relationship("StudentEnrollment", back_populates="course")

    def __repr__(self):
        return f"<Course(id={self.id} code='{self.code}' name='{self.name}')>"
