"""
用户模型
只保留评分所需的角色信息
"""
from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base


class User(Base):
    """用户模型"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    role = Column(String(20), nullable=False, default="student")  # student | professor | admin
    created_at = Column(DateTime, default=datetime.utcnow)

    # 关系
    enrollments = relationship("StudentEnrollment", back_populates="user")
    grades = relationship("StudentGrade", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id} name='{self.first_name} {self.last_name}' role='{self.role}')>"
