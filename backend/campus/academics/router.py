# campus/academics/router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from campus.academics import schemas
from campus.academics.gpa import GradeAggregator
from campus.academics.semester import (
    NoActiveEnrollmentError,
    SemesterTracker,
    StaleEnrollmentError,
)
from campus.core.config import settings
from campus.core.database import get_session
from campus.core.limiter import limiter

router = APIRouter(tags=["academics"])
logger = logging.getLogger(__name__)


@router.get("/students/{student_id}/cgpa", response_model=schemas.CGPAResponse)
def read_cgpa(student_id: str, db: Session = Depends(get_session)):
    cgpa = GradeAggregator(db).calculate_cgpa(student_id)
    return schemas.CGPAResponse(student_id=student_id, cgpa=cgpa)


@router.get(
    "/students/{student_id}/semesters/{semester_id}/gpa",
    response_model=schemas.SemesterGPAResponse,
)
def read_semester_gpa(student_id: str, semester_id: int, db: Session = Depends(get_session)):
    gpa = GradeAggregator(db).calculate_semester_gpa(student_id, semester_id)
    return schemas.SemesterGPAResponse(student_id=student_id, semester_id=semester_id, gpa=gpa)


@router.get("/students/{student_id}/record", response_model=schemas.AcademicRecord)
def read_academic_record(student_id: str, db: Session = Depends(get_session)):
    return GradeAggregator(db).get_academic_record(student_id)


@router.get("/students/{student_id}/current-semester", response_model=schemas.CurrentSemester)
def read_current_semester(student_id: str, db: Session = Depends(get_session)):
    current = SemesterTracker(db).get_current_semester(student_id)
    if current is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "No active enrollment found for student")
    return current


@router.get("/students/{student_id}/progress", response_model=schemas.SemesterProgress)
def read_semester_progress(student_id: str, db: Session = Depends(get_session)):
    progress = SemesterTracker(db).get_semester_progress(student_id)
    if progress is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Semester progress unavailable")
    return progress


@router.patch("/students/{student_id}/current-semester", response_model=schemas.EnrollmentRead)
@limiter.limit(settings.SEMESTER_UPDATE_RATE_LIMIT)
def update_current_semester(
    request: Request,
    student_id: str,
    payload: schemas.CurrentSemesterUpdate,
    db: Session = Depends(get_session),
):
    """Advance (or correct) the student's current semester"""

    try:
        return SemesterTracker(db).update_current_semester(
            student_id,
            payload.current_semester,
            expected_semester=payload.expected_semester,
        )
    except NoActiveEnrollmentError as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(e))
    except StaleEnrollmentError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
