"""
成绩统计测试
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courseware.core.exceptions import ValidationFailure
from courseware.models import StudentGrade
from courseware.services.statistics_service import StatisticsService


@pytest.fixture
def graded_course(db, factory):
    """
    一个单元两个主题：
    - 主题1：题目1、题目2
    - 主题2：题目1（没有学生作答）
    两个学生，alice 掌握题目1、题目2 作答中；bob 题目1 作答中、题目2 未作答
    """
    course = factory.course()
    unit = factory.unit(course, 1)
    topic_1 = factory.topic(unit, 1)
    topic_2 = factory.topic(unit, 2)
    q1 = factory.question(topic_1, 1)
    q2 = factory.question(topic_1, 2)
    q3 = factory.question(topic_2, 1)
    alice = factory.user(first_name="Alice")
    bob = factory.user(first_name="Bob")
    factory.enroll(course, alice)
    factory.enroll(course, bob)

    def set_grade(user, question, best, attempts):
        grade = db.query(StudentGrade).filter(
            StudentGrade.user_id == user.id,
            StudentGrade.course_topic_question_id == question.id
        ).one()
        grade.best_score = best
        grade.num_attempts = attempts

    set_grade(alice, q1, 1.0, 2)
    set_grade(alice, q2, 0.5, 1)
    set_grade(bob, q1, 0.5, 3)
    db.commit()

    return {
        "course": course, "unit": unit, "topics": [topic_1, topic_2],
        "questions": [q1, q2, q3], "alice": alice, "bob": bob,
    }


class TestGetGrades:
    """测试成绩查询"""

    def test_requires_exactly_one_filter(self, db, graded_course):
        with pytest.raises(ValidationFailure):
            StatisticsService.get_grades(db)
        with pytest.raises(ValidationFailure):
            StatisticsService.get_grades(db, course_id=1, topic_id=1)

    def test_question_rows(self, db, graded_course):
        rows = StatisticsService.get_grades(db, question_id=graded_course["questions"][0].id)

        assert [row["user"]["first_name"] for row in rows] == ["Alice", "Bob"]
        assert [row["best_score"] for row in rows] == [1.0, 0.5]
        assert [row["num_attempts"] for row in rows] == [2, 3]

    def test_course_aggregates_per_user(self, db, graded_course):
        rows = StatisticsService.get_grades(db, course_id=graded_course["course"].id)
        by_name = {row["user"]["first_name"]: row for row in rows}

        alice = by_name["Alice"]
        assert alice["average"] == pytest.approx(0.5)
        assert alice["pending_problem_count"] == 1
        assert alice["mastered_problem_count"] == 1
        assert alice["in_progress_problem_count"] == 1

        bob = by_name["Bob"]
        assert bob["average"] == pytest.approx(0.5 / 3)
        assert bob["pending_problem_count"] == 2
        assert bob["mastered_problem_count"] == 0
        assert bob["in_progress_problem_count"] == 1

    def test_topic_filter(self, db, graded_course):
        rows = StatisticsService.get_grades(db, topic_id=graded_course["topics"][1].id)

        assert len(rows) == 2
        assert all(row["pending_problem_count"] == 1 for row in rows)


class TestStatistics:
    """测试按内容统计"""

    def test_units(self, db, graded_course):
        rows = StatisticsService.get_statistics_on_units(db, course_id=graded_course["course"].id)

        assert len(rows) == 1
        row = rows[0]
        assert row["total_grades"] == 6
        assert row["completed_count"] == 1
        assert row["completion_percent"] == pytest.approx(1 / 6)
        assert row["average_attempted_count"] == pytest.approx(6 / 6)

    def test_topics(self, db, graded_course):
        rows = StatisticsService.get_statistics_on_topics(db, unit_id=graded_course["unit"].id)

        assert [row["id"] for row in rows] == [t.id for t in graded_course["topics"]]
        assert rows[0]["total_grades"] == 4
        assert rows[0]["average_score"] == pytest.approx((1.0 + 0.5 + 0.5) / 4)
        assert rows[1]["completed_count"] == 0
        assert rows[1]["completion_percent"] == 0

    def test_questions_named_by_number(self, db, graded_course):
        rows = StatisticsService.get_statistics_on_questions(db, topic_id=graded_course["topics"][0].id)

        assert [row["name"] for row in rows] == ["Problem 1", "Problem 2"]
        assert rows[0]["completion_percent"] == pytest.approx(0.5)

    def test_question_without_grades(self, db, factory):
        course = factory.course()
        unit = factory.unit(course, 1)
        topic = factory.topic(unit, 1)
        factory.question(topic, 1)

        rows = StatisticsService.get_statistics_on_questions(db, course_id=course.id)

        assert rows[0]["total_grades"] == 0
        assert rows[0]["completion_percent"] is None
        assert rows[0]["average_score"] is None
