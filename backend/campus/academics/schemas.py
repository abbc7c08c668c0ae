# campus/academics/schemas.py
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from campus.academics.models import EnrollmentStatus


class CourseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    code: str
    total_semester: int


class AcademicYearSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    year: str
    start_date: date
    end_date: date
    is_active: bool


class SemesterSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int
    code: str


class SemesterDetail(SemesterSummary):
    course: Optional[CourseSummary] = None


class EnrollmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: str
    status: EnrollmentStatus
    current_semester: int
    total_credits: int
    completed_credits: int
    cgpa: Optional[float] = None
    enrollment_date: Optional[datetime] = None
    semester: Optional[SemesterDetail] = None
    academic_year: Optional[AcademicYearSummary] = None
    course: Optional[CourseSummary] = None


class CurrentSemester(BaseModel):
    current_semester: int
    semester_info: Optional[SemesterDetail] = None
    academic_year: Optional[AcademicYearSummary] = None
    course: Optional[CourseSummary] = None
    enrollment_status: EnrollmentStatus
    total_credits: int
    completed_credits: int
    cgpa: Optional[float] = None
    enrollment_date: Optional[datetime] = None


class SemesterProgress(BaseModel):
    all_enrollments: List[EnrollmentRead]
    active_enrollment: Optional[EnrollmentRead] = None
    total_semesters: int
    current_semester: int
    progress_percentage: int


class SemesterPerformance(BaseModel):
    semester: SemesterSummary
    gpa: float


class AcademicRecord(BaseModel):
    cgpa: float
    semester_performance: List[SemesterPerformance] = []


class CGPAResponse(BaseModel):
    student_id: str
    cgpa: float


class SemesterGPAResponse(BaseModel):
    student_id: str
    semester_id: int
    gpa: float


class CurrentSemesterUpdate(BaseModel):
    current_semester: int = Field(ge=1)
    expected_semester: Optional[int] = Field(default=None, ge=1)
