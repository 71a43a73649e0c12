"""
学生个人延期/加次数模型
覆盖主题日期或题目的最大作答次数，为空的字段沿用原设置
"""
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class StudentTopicOverride(Base):
    """学生主题日期覆盖"""
    __tablename__ = "student_topic_override"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_topic_content_id = Column(Integer, ForeignKey("course_topic_content.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    dead_date = Column(DateTime, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # 关系
    topic = relationship("CourseTopicContent", back_populates="student_overrides")

    def __repr__(self):
        return f"<TopicOverride(id={self.id} topic={self.course_topic_content_id} user={self.user_id} active={self.active})>"


class StudentTopicQuestionOverride(Base):
    """学生题目作答次数覆盖"""
    __tablename__ = "student_topic_question_override"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_topic_question_id = Column(Integer, ForeignKey("course_topic_question.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    max_attempts = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # 关系
    question = relationship("CourseWWTopicQuestion", back_populates="student_overrides")

    def __repr__(self):
        return f"<QuestionOverride(id={self.id} question={self.course_topic_question_id} user={self.user_id} active={self.active})>"
