# campus/academics/gpa.py
"""
Credit-weighted GPA on a 4.0 scale.

CGPA = sum(grade_point * credits) / sum(credits) over every passed exam
result; the semester GPA applies the same formula to one semester's exams.
Only PASS results count. Rounding happens once, on the final value.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from campus.academics.models import ExamResult, Grade
from campus.academics.repository import AcademicRepository
from campus.academics.schemas import AcademicRecord, SemesterPerformance, SemesterSummary

logger = logging.getLogger(__name__)

# (minimum percentage, grade point), checked top-down
GRADE_SCALE = (
    (90, 4.0),
    (80, 3.0),
    (70, 2.0),
    (60, 1.0),
)


def round_half_up(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def grade_point(percentage: float) -> float:
    """Map a percentage onto the step scale; below 60 earns nothing."""
    for minimum, point in GRADE_SCALE:
        if percentage >= minimum:
            return point
    return 0.0


def primary_grade(result: ExamResult) -> Optional[Grade]:
    # Grades are loaded ordered by id, the first one carries the weighting
    return result.grades[0] if result.grades else None


def compute_gpa(results: Iterable[ExamResult]) -> float:
    weighted_points = 0.0
    total_credits = 0

    for result in results:
        grade = primary_grade(result)
        if grade is None or grade.subject is None or result.exam is None:
            continue
        if not result.exam.max_marks or result.exam.max_marks <= 0:
            logger.warning(f"Skipping exam result {result.id}: exam has no max marks")
            continue

        # Multiply first so whole-number boundaries (70/100) stay exact
        percentage = grade.marks_obtained * 100 / result.exam.max_marks
        credits = grade.subject.credits or 0

        weighted_points += grade_point(percentage) * credits
        total_credits += credits

    if total_credits == 0:
        return 0.0

    return round_half_up(weighted_points / total_credits)


class GradeAggregator:
    """Computes CGPA, semester GPA and the per-semester academic record."""

    def __init__(self, db: Session):
        self.repository = AcademicRepository(db)

    def calculate_cgpa(self, student_id: str) -> float:
        try:
            results = self.repository.find_exam_results(student_id)
            if not results:
                return 0.0
            return compute_gpa(results)
        except Exception as e:
            logger.error(f"Error calculating CGPA for student {student_id}: {e}")
            return 0.0

    def calculate_semester_gpa(self, student_id: str, semester_id: int) -> float:
        try:
            results = self.repository.find_exam_results(student_id, semester_id=semester_id)
            if not results:
                return 0.0
            return compute_gpa(results)
        except Exception as e:
            logger.error(
                f"Error calculating semester GPA for student {student_id} "
                f"(semester {semester_id}): {e}"
            )
            return 0.0

    def get_academic_record(self, student_id: str) -> AcademicRecord:
        try:
            cgpa = self.calculate_cgpa(student_id)
            semesters = self.repository.find_semesters_with_results(student_id)

            performance: List[SemesterPerformance] = [
                SemesterPerformance(
                    semester=SemesterSummary.model_validate(semester),
                    gpa=self.calculate_semester_gpa(student_id, semester.id),
                )
                for semester in semesters
            ]
            return AcademicRecord(cgpa=cgpa, semester_performance=performance)
        except Exception as e:
            logger.error(f"Error building academic record for student {student_id}: {e}")
            return AcademicRecord(cgpa=0.0, semester_performance=[])
