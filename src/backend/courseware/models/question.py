"""
主题题目模型
题目在主题内按 problem_number 排序，题面由外部渲染服务按路径生成
"""
from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base

# max_attempts 取该值表示不限次数
UNLIMITED_ATTEMPTS = -1


def is_unlimited(max_attempts) -> bool:
    """max_attempts 为空或取哨兵值（负数）时不限次数"""
    return max_attempts is None or max_attempts <= UNLIMITED_ATTEMPTS


class CourseWWTopicQuestion(Base):
    """主题题目"""
    __tablename__ = "course_topic_question"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_topic_content_id = Column(Integer, ForeignKey("course_topic_content.id"), nullable=False, index=True)
    problem_number = Column(Integer, nullable=False)
    weight = Column(Float, nullable=False, default=1)  # 分值
    max_attempts = Column(Integer, nullable=False, default=UNLIMITED_ATTEMPTS)
    hidden = Column(Boolean, nullable=False, default=False)
    optional = Column(Boolean, nullable=False, default=False)
    webwork_question_path = Column(String(1024), nullable=False)  # 渲染服务中的题目路径
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index(
            "course_topic_question--problem_number-topic_id",
            "course_topic_content_id", "problem_number",
            unique=True,
            sqlite_where=text("active"),
            postgresql_where=text("active"),
        ),
    )

    # 关系
    topic = relationship("CourseTopicContent", back_populates="questions")
    grades = relationship("StudentGrade", back_populates="question")
    student_overrides = relationship("StudentTopicQuestionOverride", back_populates="question")

    @property
    def has_unlimited_attempts(self) -> bool:
        return is_unlimited(self.max_attempts)

    def __repr__(self):
        return f"<Question(id={self.id} topic={self.course_topic_content_id} number={self.problem_number} active={self.active})>"
