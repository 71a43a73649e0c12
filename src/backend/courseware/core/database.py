"""
数据库配置
支持SQLite（开发）和PostgreSQL（生产）
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
import os

# 数据库连接配置
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite:///./data/courseware.db"  # 默认SQLite
)


def enable_sqlite_foreign_keys(engine) -> None:
    """SQLite 默认不检查外键，连接建立时打开"""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# 创建引擎
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
)
if "sqlite" in DATABASE_URL:
    enable_sqlite_foreign_keys(engine)

# 创建会话工厂
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# 依赖注入
def get_db():
    """数据库会话依赖注入"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    事务边界：成功提交，任何异常回滚后继续抛出

    多阶段的排序调整、软删除、提交答案都在一个 atomic 块内完成，
    失败时不会留下哨兵值或移位了一半的行。
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
