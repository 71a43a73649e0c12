"""
课程主题模型
主题在单元内按 content_order 排序，并带有开始/结束/截止日期
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class CourseTopicContent(Base):
    """
    课程主题

    日期约定（存储层不校验，由调用方保证）：start_date <= end_date <= dead_date
    - end_date 之前作答：全额计分
    - end_date 到 dead_date 之间：部分计分
    """
    __tablename__ = "course_topic_content"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_unit_content_id = Column(Integer, ForeignKey("course_unit_content.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    content_order = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    dead_date = Column(DateTime, nullable=False)
    partial_extend = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index(
            "course_topic_content--name-unit_id",
            "course_unit_content_id", "name",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
        Index(
            "course_topic_content--content_order-unit_id",
            "course_unit_content_id", "content_order",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
    )

    # 关系
    unit = relationship("CourseUnitContent", back_populates="topics")
    questions = relationship("CourseWWTopicQuestion", back_populates="topic")
    student_overrides = relationship("StudentTopicOverride", back_populates="topic")

    def __repr__(self):
        return f"<Topic(id={self.id} unit={self.course_unit_content_id} order={self.content_order} name='{self.name}' active={self.active})>"
