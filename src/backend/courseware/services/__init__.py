"""
业务服务
"""
from .ordering import OrderedSequence, OrderedSequenceService, SENTINEL_ORDER
from .soft_delete import SoftDeleteService
from .override_service import OverrideService, EffectiveTopic, EffectiveQuestion
from .grade_service import GradeService, SubmitAnswerResult
from .enrollment_service import EnrollmentService
from .course_service import CourseService
from .content_service import ContentService
from .question_service import QuestionService
from .statistics_service import StatisticsService

__all__ = [
    "OrderedSequence",
    "OrderedSequenceService",
    "SENTINEL_ORDER",
    "SoftDeleteService",
    "OverrideService",
    "EffectiveTopic",
    "EffectiveQuestion",
    "GradeService",
    "SubmitAnswerResult",
    "EnrollmentService",
    "CourseService",
    "ContentService",
    "QuestionService",
    "StatisticsService",
]
