"""
课程单元模型
单元在课程内按 content_order 排序
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class CourseUnitContent(Base):
    """
    课程单元

    唯一性只约束启用的单元：
    - 同一课程内 name 唯一
    - 同一课程内 content_order 唯一（1..N 连续）
    软删除的单元会被改名并把顺序移到 N 之后。
    """
    __tablename__ = "course_unit_content"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("course.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    content_order = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index(
            "course_unit_content--name-course_id",
            "course_id", "name",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
        Index(
            "course_unit_content--content_order-course_id",
            "course_id", "content_order",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
    )

    # 关系
    course = relationship("Course", back_populates="units")
    topics = relationship("CourseTopicContent", back_populates="unit")

    def __repr__(self):
        return f"<Unit(id={self.id} course={self.course_id} order={self.content_order} name='{self.name}' active={self.active})>"
