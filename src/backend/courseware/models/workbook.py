"""
作答记录模型
记录每次计分提交，保留完整历史
"""
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class StudentWorkbook(Base):
    """
    作答记录（每次计分提交都创建新记录，永不更新）

    submitted 为提交的表单快照，不含渲染后的 HTML。
    """
    __tablename__ = "student_workbook"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_grade_id = Column(Integer, ForeignKey("student_grade.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_topic_question_id = Column(Integer, ForeignKey("course_topic_question.id"), nullable=False, index=True)
    random_seed = Column(Integer, nullable=False)
    submitted = Column(JSON, nullable=False)
    result = Column(Float, nullable=False)
    time = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # 关系
    grade = relationship("StudentGrade", back_populates="workbooks")

    def __repr__(self):
        return f"<Workbook(id={self.id} grade={self.student_grade_id} result={self.result} at={self.time})>"
