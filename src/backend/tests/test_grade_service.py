"""
提交答案计分测试

时间轴（conftest.NOW 为基准）：
    start = NOW - 10d    end = NOW + 5d    dead = NOW + 10d（之后不再计分）
"""
import pytest
import sys
import os
from datetime import timedelta

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from conftest import NOW
from courseware.core.exceptions import NotFoundError, WrappedError
from courseware.models import GradeState, StudentWorkbook
from courseware.services.grade_service import (
    GradeService,
    apply_attempt,
    is_answer_submission,
    strip_rendered_markup,
)
from courseware.services.override_service import EffectiveQuestion, EffectiveTopic, OverrideService
from courseware.services.soft_delete import SoftDeleteService

END = NOW + timedelta(days=5)
DEAD = NOW + timedelta(days=10)

SUBMISSION = {
    "form_data": {"AnSwEr0001": "4", "submitAnswers": "Submit Answers"},
    "renderedHTML": "<div>problem</div>",
}
PREVIEW = {
    "form_data": {"AnSwEr0001": "4", "previewAnswers": "Preview"},
}


def submit(db, setup, score, now, config, submitted=None):
    return GradeService.submit_answer(
        db,
        user_id=setup["student"].id,
        question_id=setup["question"].id,
        score=score,
        submitted=submitted or SUBMISSION,
        now=now,
        config=config
    )


class TestSubmissionHelpers:
    """测试提交表单辅助函数"""

    def test_marker_in_form_data(self):
        assert is_answer_submission(SUBMISSION) is True

    def test_marker_at_top_level(self):
        assert is_answer_submission({"submitAnswers": "1"}) is True

    def test_preview_is_not_submission(self):
        assert is_answer_submission(PREVIEW) is False
        assert is_answer_submission({}) is False
        assert is_answer_submission(None) is False

    def test_strip_rendered_markup(self):
        stripped = strip_rendered_markup(SUBMISSION)
        assert "renderedHTML" not in stripped
        assert stripped["form_data"] == SUBMISSION["form_data"]


class TestApplyAttempt:
    """测试纯计分逻辑"""

    @pytest.fixture
    def topic(self):
        return EffectiveTopic(id=1, start_date=NOW - timedelta(days=10), end_date=END, dead_date=DEAD)

    def test_partial_credit_formula(self, single_question, topic):
        grade = single_question["question"].grades[0]
        grade.legal_score = 0.6
        grade.overall_best_score = 0.6
        grade.best_score = 0.6
        grade.partial_credit_best_score = 0.6
        grade.effective_score = 0.6
        grade.num_attempts = 1

        counted = apply_attempt(grade, 1.0, topic, EffectiveQuestion(id=1, max_attempts=-1), END + timedelta(hours=1))

        assert counted is True
        assert grade.partial_credit_best_score == pytest.approx(0.8)
        assert grade.best_score == pytest.approx(0.8)
        assert grade.effective_score == pytest.approx(0.8)
        assert grade.overall_best_score == 1.0

    def test_cap_blocks_counting(self, single_question, topic):
        grade = single_question["question"].grades[0]
        grade.num_attempts = 2

        counted = apply_attempt(grade, 0.5, topic, EffectiveQuestion(id=1, max_attempts=2), NOW)

        assert counted is False
        assert grade.num_attempts == 2
        assert grade.best_score == 0
        assert grade.overall_best_score == 0
        assert grade.latest_attempts == 0

    def test_after_dead_date_changes_nothing(self, single_question, topic):
        grade = single_question["question"].grades[0]

        counted = apply_attempt(grade, 0.7, topic, EffectiveQuestion(id=1, max_attempts=-1), DEAD)

        assert counted is False
        assert grade.num_attempts == 0
        assert grade.overall_best_score == 0
        assert grade.first_attempts == 0


class TestFullCreditWindow:
    """测试全额计分"""

    def test_score_before_end_date(self, db, single_question, grading_config):
        result = submit(db, single_question, 0.8, NOW, grading_config)

        grade = result.grade
        assert grade.best_score == pytest.approx(0.8)
        assert grade.effective_score == pytest.approx(0.8)
        assert grade.legal_score == pytest.approx(0.8)
        assert grade.overall_best_score == pytest.approx(0.8)
        assert grade.num_attempts == 1
        assert grade.first_attempts == pytest.approx(0.8)
        assert grade.latest_attempts == pytest.approx(0.8)
        assert grade.state == GradeState.ATTEMPTED

    def test_workbook_written(self, db, single_question, grading_config):
        result = submit(db, single_question, 0.5, NOW, grading_config)

        workbook = result.workbook
        assert workbook is not None
        assert workbook.result == pytest.approx(0.5)
        assert workbook.random_seed == result.grade.random_seed
        assert workbook.time == NOW
        assert "renderedHTML" not in workbook.submitted
        assert workbook.submitted["form_data"]["AnSwEr0001"] == "4"

    def test_first_attempt_recorded_once(self, db, single_question, grading_config):
        submit(db, single_question, 0.3, NOW, grading_config)
        result = submit(db, single_question, 0.7, NOW + timedelta(hours=1), grading_config)

        assert result.grade.first_attempts == pytest.approx(0.3)
        assert result.grade.latest_attempts == pytest.approx(0.7)
        assert result.grade.num_attempts == 2

    def test_lower_score_does_not_reduce_best(self, db, single_question, grading_config):
        submit(db, single_question, 0.9, NOW, grading_config)
        result = submit(db, single_question, 0.2, NOW + timedelta(hours=1), grading_config)

        assert result.grade.best_score == pytest.approx(0.9)
        assert result.grade.effective_score == pytest.approx(0.9)


class TestPartialCreditWindow:
    """测试部分计分"""

    def test_partial_credit_after_end_date(self, db, single_question, grading_config):
        submit(db, single_question, 0.6, NOW, grading_config)

        result = submit(db, single_question, 1.0, END + timedelta(days=1), grading_config)

        grade = result.grade
        assert grade.legal_score == pytest.approx(0.6)
        assert grade.partial_credit_best_score == pytest.approx(0.6 + (1.0 - 0.6) * 0.5)
        assert grade.best_score == pytest.approx(0.8)
        assert grade.effective_score == pytest.approx(0.8)
        assert grade.overall_best_score == pytest.approx(1.0)
        assert grade.num_attempts == 2

    def test_topic_override_extends_full_credit(self, db, single_question, grading_config):
        student = single_question["student"]
        topic = single_question["topic"]
        OverrideService.extend_topic(
            db, topic.id, student.id,
            end_date=END + timedelta(days=3),
            dead_date=DEAD + timedelta(days=3)
        )

        result = submit(db, single_question, 0.9, END + timedelta(days=1), grading_config)

        assert result.grade.best_score == pytest.approx(0.9)
        assert result.grade.legal_score == pytest.approx(0.9)


class TestAfterDeadDate:
    """测试截止日期之后"""

    def test_between_dead_date_and_solutions_is_noop(self, db, single_question, grading_config):
        result = submit(db, single_question, 0.7, DEAD + timedelta(days=1), grading_config)

        grade = result.grade
        assert result.workbook is None
        assert grade.overall_best_score == 0
        assert grade.first_attempts == 0
        assert grade.latest_attempts == 0
        assert grade.num_attempts == 0
        assert grade.best_score == 0
        assert grade.effective_score == 0
        assert db.query(StudentWorkbook).count() == 0

    def test_exactly_at_dead_date_is_noop(self, db, single_question, grading_config):
        submit(db, single_question, 0.4, NOW, grading_config)

        result = submit(db, single_question, 0.9, DEAD, grading_config)

        assert result.workbook is None
        assert result.grade.num_attempts == 1
        assert result.grade.overall_best_score == pytest.approx(0.4)

    def test_after_solutions_delay_is_noop(self, db, single_question, grading_config):
        submit(db, single_question, 0.4, NOW, grading_config)

        result = submit(db, single_question, 1.0, DEAD + timedelta(days=8), grading_config)

        grade = result.grade
        assert result.workbook is None
        assert grade.num_attempts == 1
        assert grade.overall_best_score == pytest.approx(0.4)
        assert grade.best_score == pytest.approx(0.4)
        assert grade.effective_score == pytest.approx(0.4)
        assert db.query(StudentWorkbook).count() == 1


class TestAttemptLimits:
    """测试作答次数限制和锁定"""

    @pytest.fixture
    def limited(self, factory):
        course = factory.course()
        unit = factory.unit(course, 1)
        topic = factory.topic(unit, 1)
        question = factory.question(topic, 1, max_attempts=3)
        student = factory.user()
        factory.enroll(course, student)
        return {"course": course, "topic": topic, "question": question, "student": student}

    def test_fourth_attempt_not_counted(self, db, limited, grading_config):
        for i in range(3):
            submit(db, limited, 0.2, NOW + timedelta(minutes=i), grading_config)

        result = submit(db, limited, 0.9, NOW + timedelta(minutes=10), grading_config)

        grade = result.grade
        assert grade.num_attempts == 3
        assert grade.best_score == pytest.approx(0.2)
        assert grade.effective_score == pytest.approx(0.2)
        assert grade.overall_best_score == pytest.approx(0.2)
        assert grade.latest_attempts == pytest.approx(0.2)
        # 超出次数的提交仍留下作答记录
        assert result.workbook is not None
        assert result.workbook.result == pytest.approx(0.9)

    def test_single_attempt_cap(self, db, factory, grading_config):
        course = factory.course()
        topic = factory.topic(factory.unit(course, 1), 1)
        question = factory.question(topic, 1, max_attempts=1)
        student = factory.user()
        factory.enroll(course, student)
        setup = {"question": question, "student": student}

        submit(db, setup, 0.2, NOW, grading_config)
        result = submit(db, setup, 0.9, NOW + timedelta(minutes=1), grading_config)

        grade = result.grade
        assert grade.num_attempts == 1
        assert grade.overall_best_score == pytest.approx(0.2)
        assert grade.latest_attempts == pytest.approx(0.2)
        assert grade.best_score == pytest.approx(0.2)

    def test_question_override_raises_cap(self, db, limited, grading_config):
        OverrideService.extend_question(db, limited["question"].id, limited["student"].id, max_attempts=5)
        for i in range(4):
            result = submit(db, limited, 0.2 * (i + 1), NOW + timedelta(minutes=i), grading_config)

        assert result.grade.num_attempts == 4
        assert result.grade.best_score == pytest.approx(0.8)

    def test_locked_grade_not_scored(self, db, single_question, grading_config):
        grade = single_question["question"].grades[0]
        grade.locked = True
        db.commit()

        result = submit(db, single_question, 0.9, NOW, grading_config)

        assert result.grade.num_attempts == 0
        assert result.grade.best_score == 0
        assert result.grade.overall_best_score == 0
        assert result.grade.state == GradeState.LOCKED


class TestStateMachine:
    """测试状态转换和不变量"""

    def test_new_to_mastered(self, db, single_question, grading_config):
        grade = single_question["question"].grades[0]
        assert grade.state == GradeState.NEW

        result = submit(db, single_question, 1.0, NOW, grading_config)
        assert result.grade.state == GradeState.MASTERED

    def test_mastered_ignores_submissions(self, db, single_question, grading_config):
        submit(db, single_question, 1.0, NOW, grading_config)

        result = submit(db, single_question, 0.1, NOW + timedelta(hours=1), grading_config)

        assert result.workbook is None
        assert result.grade.num_attempts == 1
        assert result.grade.latest_attempts == pytest.approx(1.0)

    def test_monotonic_attempts_and_best(self, db, single_question, grading_config):
        scores = [0.1, 0.5, 0.3, 0.0, 0.9, 0.2, 0.6]
        times = [NOW, NOW, END + timedelta(hours=1), END + timedelta(days=1), NOW, DEAD + timedelta(days=2), NOW]
        seed = single_question["question"].grades[0].random_seed

        previous_attempts = 0
        previous_best = 0.0
        for score, when in zip(scores, times):
            grade = submit(db, single_question, score, when, grading_config).grade
            assert grade.num_attempts >= previous_attempts
            assert grade.overall_best_score >= previous_best
            assert grade.random_seed == seed
            previous_attempts = grade.num_attempts
            previous_best = grade.overall_best_score


class TestNoOpCases:
    """测试不计分的情况"""

    def test_missing_grade(self, db, factory, single_question, grading_config):
        outsider = factory.user()

        result = GradeService.submit_answer(
            db, outsider.id, single_question["question"].id, 1.0, SUBMISSION, now=NOW, config=grading_config
        )

        assert result.grade is None
        assert result.workbook is None

    def test_preview_returns_grade_unchanged(self, db, single_question, grading_config):
        result = submit(db, single_question, 1.0, NOW, grading_config, submitted=PREVIEW)

        assert result.workbook is None
        assert result.grade.num_attempts == 0
        assert result.grade.overall_best_score == 0


class TestFailures:
    """测试异常传播"""

    def test_persistence_error_wrapped(self, db, single_question, grading_config, monkeypatch):
        def broken(*args, **kwargs):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(GradeService, "get_grade", staticmethod(broken))

        with pytest.raises(WrappedError) as exc_info:
            submit(db, single_question, 0.5, NOW, grading_config)
        assert isinstance(exc_info.value.cause, SQLAlchemyError)

    def test_domain_error_not_wrapped(self, db, single_question, grading_config, monkeypatch):
        def missing(*args, **kwargs):
            raise NotFoundError("gone")

        monkeypatch.setattr(GradeService, "get_grade", staticmethod(missing))

        with pytest.raises(NotFoundError):
            submit(db, single_question, 0.5, NOW, grading_config)


class TestDeletedContent:
    """测试已删除的题目和主题"""

    def test_deleted_question_rejected(self, db, single_question, grading_config):
        SoftDeleteService.delete_question(db, single_question["question"].id)

        with pytest.raises(NotFoundError):
            submit(db, single_question, 0.9, NOW, grading_config)
        assert db.query(StudentWorkbook).count() == 0

    def test_deleted_topic_rejected(self, db, single_question, grading_config):
        SoftDeleteService.delete_topic(db, single_question["topic"].id)

        with pytest.raises(NotFoundError):
            submit(db, single_question, 0.9, NOW, grading_config)

        grade = single_question["question"].grades[0]
        db.refresh(grade)
        assert grade.num_attempts == 0
        assert grade.overall_best_score == 0
