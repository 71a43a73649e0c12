"""
选课与成绩补齐服务

每个在读学生对课程中每道启用的题目都应有且只有一条成绩记录：
- 选课时补齐该学生在课程中的全部题目
- 新建题目时补齐该课程全部在读学生
- 定期全量扫描修复遗漏
"""
import logging
import random
from typing import List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from courseware.core.clock import utcnow
from courseware.core.database import atomic
from courseware.core.exceptions import NotFoundError, WrappedError, translate_integrity_error
from courseware.models import (
    Course,
    CourseUnitContent,
    CourseTopicContent,
    CourseWWTopicQuestion,
    StudentEnrollment,
    StudentGrade,
)

logger = logging.getLogger(__name__)

# 随机种子范围 [0, MAX_RANDOM_SEED)
MAX_RANDOM_SEED = 999999


def generate_random_seed() -> int:
    """为新成绩生成题目随机种子"""
    return random.randrange(0, MAX_RANDOM_SEED)


def _active_questions_in_course(db: Session, course_id: int):
    return db.query(CourseWWTopicQuestion).join(
        CourseTopicContent, CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id
    ).join(
        CourseUnitContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
    ).filter(
        CourseUnitContent.course_id == course_id,
        CourseUnitContent.active == True,
        CourseTopicContent.active == True,
        CourseWWTopicQuestion.active == True
    )


class EnrollmentService:
    """选课与成绩补齐服务"""

    @staticmethod
    def create_new_student_grade(db: Session, user_id: int, question_id: int) -> StudentGrade:
        """
        创建一条分数全为 0 的成绩（不提交）

        Raises:
            WrappedError: 写入失败
        """
        grade = StudentGrade(
            user_id=user_id,
            course_topic_question_id=question_id,
            random_seed=generate_random_seed(),
            num_attempts=0,
            best_score=0,
            overall_best_score=0,
            partial_credit_best_score=0,
            effective_score=0,
            legal_score=0,
            first_attempts=0,
            latest_attempts=0,
            locked=False
        )
        try:
            db.add(grade)
            db.flush()
        except SQLAlchemyError as e:
            raise WrappedError("Could not create new student grade", e) from e
        return grade

    @staticmethod
    def get_active_enrollment(db: Session, course_id: int, user_id: int) -> Optional[StudentEnrollment]:
        return db.query(StudentEnrollment).filter(
            StudentEnrollment.course_id == course_id,
            StudentEnrollment.user_id == user_id,
            StudentEnrollment.drop_date.is_(None)
        ).first()

    @staticmethod
    def questions_requiring_grades_for_user(db: Session, course_id: int, user_id: int) -> List[CourseWWTopicQuestion]:
        """课程中该学生还没有成绩的启用题目"""
        return _active_questions_in_course(db, course_id).outerjoin(
            StudentGrade,
            and_(
                StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id,
                StudentGrade.user_id == user_id
            )
        ).filter(
            StudentGrade.id.is_(None)
        ).order_by(CourseWWTopicQuestion.id.asc()).all()

    @staticmethod
    def users_requiring_grade_for_question(db: Session, question_id: int) -> List[int]:
        """在读但还没有该题成绩的学生ID"""
        rows = db.query(StudentEnrollment.user_id).join(
            CourseUnitContent, CourseUnitContent.course_id == StudentEnrollment.course_id
        ).join(
            CourseTopicContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
        ).join(
            CourseWWTopicQuestion, CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id
        ).outerjoin(
            StudentGrade,
            and_(
                StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id,
                StudentGrade.user_id == StudentEnrollment.user_id
            )
        ).filter(
            CourseWWTopicQuestion.id == question_id,
            CourseWWTopicQuestion.active == True,
            CourseTopicContent.active == True,
            CourseUnitContent.active == True,
            StudentEnrollment.drop_date.is_(None),
            StudentGrade.id.is_(None)
        ).distinct().all()
        return [row[0] for row in rows]

    @staticmethod
    def _create_grades_for_user_enrollment(db: Session, course_id: int, user_id: int) -> int:
        if EnrollmentService.get_active_enrollment(db, course_id, user_id) is None:
            return 0
        questions = EnrollmentService.questions_requiring_grades_for_user(db, course_id, user_id)
        for question in questions:
            EnrollmentService.create_new_student_grade(db, user_id, question.id)
        return len(questions)

    @staticmethod
    def _create_grades_for_question(db: Session, question_id: int) -> int:
        user_ids = EnrollmentService.users_requiring_grade_for_question(db, question_id)
        for user_id in user_ids:
            EnrollmentService.create_new_student_grade(db, user_id, question_id)
        return len(user_ids)

    @staticmethod
    def create_grades_for_user_enrollment(db: Session, course_id: int, user_id: int) -> int:
        """
        为在读学生补齐课程中全部启用题目的成绩

        Args:
            db: 数据库会话
            course_id: 课程ID
            user_id: 用户ID

        Returns:
            int: 新建的成绩数（未选课时为 0）
        """
        with atomic(db):
            count = EnrollmentService._create_grades_for_user_enrollment(db, course_id, user_id)
        logger.info(f"课程 {course_id} 用户 {user_id} 补齐成绩 {count} 条")
        return count

    @staticmethod
    def create_grades_for_question(db: Session, question_id: int) -> int:
        """
        为课程的全部在读学生补齐一道题的成绩

        Returns:
            int: 新建的成绩数
        """
        with atomic(db):
            count = EnrollmentService._create_grades_for_question(db, question_id)
        logger.info(f"题目 {question_id} 补齐成绩 {count} 条")
        return count

    @staticmethod
    def find_missing_grades(db: Session) -> List[Tuple[int, int]]:
        """
        全量查找缺失的成绩

        Returns:
            list: (user_id, question_id) 列表
        """
        rows = db.query(
            StudentEnrollment.user_id,
            CourseWWTopicQuestion.id
        ).select_from(StudentEnrollment).join(
            CourseUnitContent, CourseUnitContent.course_id == StudentEnrollment.course_id
        ).join(
            CourseTopicContent, CourseTopicContent.course_unit_content_id == CourseUnitContent.id
        ).join(
            CourseWWTopicQuestion, CourseWWTopicQuestion.course_topic_content_id == CourseTopicContent.id
        ).outerjoin(
            StudentGrade,
            and_(
                StudentGrade.course_topic_question_id == CourseWWTopicQuestion.id,
                StudentGrade.user_id == StudentEnrollment.user_id
            )
        ).filter(
            StudentEnrollment.drop_date.is_(None),
            CourseUnitContent.active == True,
            CourseTopicContent.active == True,
            CourseWWTopicQuestion.active == True,
            StudentGrade.id.is_(None)
        ).distinct().order_by(
            StudentEnrollment.user_id.asc(),
            CourseWWTopicQuestion.id.asc()
        ).all()
        return [(row[0], row[1]) for row in rows]

    @staticmethod
    def sync_missing_grades(db: Session) -> int:
        """
        全量补齐缺失的成绩

        每条单独提交，一条失败只记录日志，不影响其他记录。

        Returns:
            int: 成功新建的成绩数
        """
        missing = EnrollmentService.find_missing_grades(db)
        logger.info(f"发现 {len(missing)} 条缺失的成绩")

        created = 0
        for user_id, question_id in missing:
            try:
                with atomic(db):
                    EnrollmentService.create_new_student_grade(db, user_id, question_id)
                created += 1
            except (WrappedError, SQLAlchemyError) as e:
                logger.error(f"补齐成绩失败 user={user_id} question={question_id}: {e}")

        logger.info(f"补齐成绩完成: {created}/{len(missing)}")
        return created

    @staticmethod
    def enroll(db: Session, course_id: int, user_id: int) -> StudentEnrollment:
        """
        选课并补齐成绩（同一事务）

        Raises:
            AlreadyExistsError: 已在读
            NotFoundError: 用户或课程不存在
        """
        try:
            with atomic(db):
                enrollment = StudentEnrollment(
                    user_id=user_id,
                    course_id=course_id,
                    enroll_date=utcnow(),
                    drop_date=None
                )
                db.add(enrollment)
                db.flush()
                count = EnrollmentService._create_grades_for_user_enrollment(db, course_id, user_id)
        except IntegrityError as e:
            raise translate_integrity_error(
                e,
                StudentEnrollment.__table__,
                {("user_id", "course_id"): "This user is already enrolled in this course"},
                not_found_message="User or course was not found",
            ) from e

        db.refresh(enrollment)
        logger.info(f"用户 {user_id} 选课 {course_id}，新建成绩 {count} 条")
        return enrollment

    @staticmethod
    def enroll_by_code(db: Session, code: str, user_id: int) -> StudentEnrollment:
        """
        按选课码选课

        Raises:
            NotFoundError: 选课码不存在
        """
        course = db.query(Course).filter(Course.code == code).first()
        if course is None:
            raise NotFoundError("Could not find course with the given code")
        return EnrollmentService.enroll(db, course.id, user_id)

    @staticmethod
    def drop_enrollment(db: Session, course_id: int, user_id: int) -> StudentEnrollment:
        """
        退课（记录 drop_date，成绩保留）

        Raises:
            NotFoundError: 没有在读记录
        """
        with atomic(db):
            enrollment = EnrollmentService.get_active_enrollment(db, course_id, user_id)
            if enrollment is None:
                raise NotFoundError("Could not find an active enrollment for this user and course")
            enrollment.drop_date = utcnow()
        db.refresh(enrollment)
        logger.info(f"用户 {user_id} 退课 {course_id}")
        return enrollment
