"""
课程管理后端
课程内容排序、作答评分与选课成绩同步
"""

__version__ = "0.1.0"
