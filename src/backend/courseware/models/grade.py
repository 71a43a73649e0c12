"""
学生成绩模型（每个学生每道题一条）
"""
from enum import Enum

from sqlalchemy import Column, Integer, Float, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class GradeState(str, Enum):
    """成绩状态"""
    NEW = "new"              # 未作答
    ATTEMPTED = "attempted"  # 已作答
    MASTERED = "mastered"    # 满分（终态）
    LOCKED = "locked"        # 已锁定，不再计分（终态）


class StudentGrade(Base):
    """
    学生成绩

    字段说明：
    - random_seed: 创建时确定，之后每次渲染都使用同一个种子，保证题目变体不变
    - overall_best_score: 不论时间窗口的历史最高分
    - best_score: 计入成绩的最高分（全额或部分计分）
    - legal_score: 最后一次全额计分窗口内的成绩，部分计分以它为基准
    - partial_credit_best_score: 部分计分窗口内的最高分
    - effective_score: 用于统计的有效分
    所有分数都在 [0, 1] 之间。
    """
    __tablename__ = "student_grade"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_topic_question_id = Column(Integer, ForeignKey("course_topic_question.id"), nullable=False, index=True)
    random_seed = Column(Integer, nullable=False)
    num_attempts = Column(Integer, nullable=False, default=0)
    best_score = Column(Float, nullable=False, default=0)
    overall_best_score = Column(Float, nullable=False, default=0)
    partial_credit_best_score = Column(Float, nullable=False, default=0)
    effective_score = Column(Float, nullable=False, default=0)
    legal_score = Column(Float, nullable=False, default=0)
    first_attempts = Column(Float, nullable=False, default=0)
    latest_attempts = Column(Float, nullable=False, default=0)
    locked = Column(Boolean, nullable=False, default=False)
    current_problem_state = Column(JSON, nullable=True)  # 用于恢复作答的表单快照
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "course_topic_question_id", name="student_grade--user_id-question_id"),
    )

    # 关系
    user = relationship("User", back_populates="grades")
    question = relationship("CourseWWTopicQuestion", back_populates="grades")
    workbooks = relationship("StudentWorkbook", back_populates="grade", order_by="StudentWorkbook.id")

    @property
    def state(self) -> GradeState:
        if self.locked:
            return GradeState.LOCKED
        if self.overall_best_score is not None and self.overall_best_score >= 1:
            return GradeState.MASTERED
        if self.num_attempts:
            return GradeState.ATTEMPTED
        return GradeState.NEW

    def __repr__(self):
        return f"<Grade(id={self.id} user={self.user_id} qid={self.course_topic_question_id} attempts={self.num_attempts} best={self.best_score})>"
