# campus/academics/repository.py
"""
Query layer for the academic tables.

Every lookup eagerly loads the nested relations its callers read, so the
returned objects stay usable after the session is closed.
"""

from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, selectinload
from sqlmodel import select

from campus.academics.models import (
    Exam,
    ExamResult,
    ExamResultStatus,
    EnrollmentStatus,
    Grade,
    Semester,
    StudentEnrollment,
)


def _enrollment_options():
    return (
        selectinload(StudentEnrollment.semester).selectinload(Semester.course),
        selectinload(StudentEnrollment.academic_year),
        selectinload(StudentEnrollment.course),
    )


class AcademicRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_exam_results(
        self,
        student_id: str,
        status: ExamResultStatus = ExamResultStatus.PASS,
        semester_id: Optional[int] = None,
    ) -> List[ExamResult]:
        stmt = (
            select(ExamResult)
            .where(ExamResult.student_id == student_id)
            .where(ExamResult.status == status.value)
            .options(
                selectinload(ExamResult.grades).selectinload(Grade.subject),
                selectinload(ExamResult.exam),
            )
            .order_by(ExamResult.id)
        )
        if semester_id is not None:
            stmt = stmt.join(Exam, Exam.id == ExamResult.exam_id).where(
                Exam.semester_id == semester_id
            )
        return list(self.db.scalars(stmt).all())

    def find_active_enrollment(self, student_id: str) -> Optional[StudentEnrollment]:
        stmt = (
            select(StudentEnrollment)
            .where(StudentEnrollment.student_id == student_id)
            .where(StudentEnrollment.status == EnrollmentStatus.ACTIVE.value)
            .options(*_enrollment_options())
            .order_by(StudentEnrollment.id)
        )
        return self.db.scalars(stmt).first()

    def find_enrollments(self, student_id: str) -> List[StudentEnrollment]:
        stmt = (
            select(StudentEnrollment)
            .where(StudentEnrollment.student_id == student_id)
            .options(*_enrollment_options())
            .order_by(StudentEnrollment.current_semester, StudentEnrollment.id)
        )
        return list(self.db.scalars(stmt).all())

    def find_semesters_with_results(self, student_id: str) -> List[Semester]:
        """Semesters holding at least one passing, graded result for the student."""
        stmt = (
            select(Semester)
            .join(Exam, Exam.semester_id == Semester.id)
            .join(ExamResult, ExamResult.exam_id == Exam.id)
            .join(Grade, Grade.exam_result_id == ExamResult.id)
            .where(ExamResult.student_id == student_id)
            .where(ExamResult.status == ExamResultStatus.PASS.value)
            .distinct()
            .order_by(Semester.number, Semester.id)
        )
        return list(self.db.scalars(stmt).all())

    def update_enrollment(
        self,
        enrollment_id: int,
        current_semester: int,
        expected_semester: Optional[int] = None,
    ) -> Optional[StudentEnrollment]:
        """
        Persist a new current semester.

        With ``expected_semester`` the write only applies while the stored
        value still matches it; ``None`` is returned when it does not.
        """
        stmt = (
            update(StudentEnrollment)
            .where(StudentEnrollment.id == enrollment_id)
            .values(current_semester=current_semester)
        )
        if expected_semester is not None:
            stmt = stmt.where(StudentEnrollment.current_semester == expected_semester)

        result = self.db.execute(stmt, execution_options={"synchronize_session": False})
        if result.rowcount == 0:
            self.db.rollback()
            return None
        self.db.commit()

        refreshed = (
            select(StudentEnrollment)
            .where(StudentEnrollment.id == enrollment_id)
            .options(*_enrollment_options())
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(refreshed).one()
