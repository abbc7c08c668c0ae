# campus/academics/semester.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from campus.academics.gpa import round_half_up
from campus.academics.repository import AcademicRepository
from campus.academics.schemas import (
    AcademicYearSummary,
    CourseSummary,
    CurrentSemester,
    EnrollmentRead,
    SemesterDetail,
    SemesterProgress,
)

logger = logging.getLogger(__name__)


class AcademicsError(Exception):
    """Base exception for academic record operations"""
    pass


class NoActiveEnrollmentError(AcademicsError):
    def __init__(self, student_id: str):
        self.student_id = student_id
        super().__init__("No active enrollment found for student")


class StaleEnrollmentError(AcademicsError):
    """The enrollment moved on since the caller last read it"""

    def __init__(self, student_id: str, expected_semester: int):
        self.student_id = student_id
        self.expected_semester = expected_semester
        super().__init__(
            f"Enrollment for student {student_id} is no longer at semester {expected_semester}"
        )


def _validate_optional(schema, obj):
    return schema.model_validate(obj) if obj is not None else None


class SemesterTracker:
    """Reads and advances a student's position in their programme."""

    def __init__(self, db: Session):
        self.repository = AcademicRepository(db)

    def get_current_semester(self, student_id: str) -> Optional[CurrentSemester]:
        try:
            enrollment = self.repository.find_active_enrollment(student_id)
            if not enrollment:
                return None

            return CurrentSemester(
                current_semester=enrollment.current_semester,
                semester_info=_validate_optional(SemesterDetail, enrollment.semester),
                academic_year=_validate_optional(AcademicYearSummary, enrollment.academic_year),
                course=_validate_optional(CourseSummary, enrollment.course),
                enrollment_status=enrollment.status,
                total_credits=enrollment.total_credits,
                completed_credits=enrollment.completed_credits,
                cgpa=enrollment.cgpa,
                enrollment_date=enrollment.enrollment_date,
            )
        except Exception as e:
            logger.error(f"Error getting current semester for student {student_id}: {e}")
            return None

    def get_semester_progress(self, student_id: str) -> Optional[SemesterProgress]:
        try:
            enrollments = [
                EnrollmentRead.model_validate(enrollment)
                for enrollment in self.repository.find_enrollments(student_id)
            ]
            active = next((e for e in enrollments if e.status == "ACTIVE"), None)

            total_semesters = 0
            current_semester = 0
            progress = 0
            if active is not None:
                total_semesters = active.course.total_semester if active.course else 0
                current_semester = active.current_semester
                # A course without a semester count is treated as a single semester
                progress = int(round_half_up(current_semester / (total_semesters or 1) * 100, 0))

            return SemesterProgress(
                all_enrollments=enrollments,
                active_enrollment=active,
                total_semesters=total_semesters,
                current_semester=current_semester,
                progress_percentage=progress,
            )
        except Exception as e:
            logger.error(f"Error getting semester progress for student {student_id}: {e}")
            return None

    def update_current_semester(
        self,
        student_id: str,
        new_semester: int,
        expected_semester: Optional[int] = None,
    ) -> EnrollmentRead:
        """
        Move the student's active enrollment to ``new_semester``.

        No bounds or ordering checks are applied here, callers own those.
        Pass ``expected_semester`` to reject the write when another caller
        changed the enrollment in between; without it the last write wins.

        Raises:
            NoActiveEnrollmentError: the student has no ACTIVE enrollment
            StaleEnrollmentError: ``expected_semester`` no longer matches
        """
        try:
            enrollment = self.repository.find_active_enrollment(student_id)
            if not enrollment:
                raise NoActiveEnrollmentError(student_id)

            updated = self.repository.update_enrollment(
                enrollment.id, new_semester, expected_semester=expected_semester
            )
            if updated is None:
                if expected_semester is None:
                    # the enrollment vanished between the lookup and the write
                    raise NoActiveEnrollmentError(student_id)
                raise StaleEnrollmentError(student_id, expected_semester)

            logger.info(
                f"Student {student_id} moved to semester {new_semester} "
                f"(enrollment {enrollment.id})"
            )
            return EnrollmentRead.model_validate(updated)
        except Exception as e:
            logger.error(f"Error updating current semester for student {student_id}: {e}")
            raise
