# campus/academics/models.py
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, List

from sqlmodel import SQLModel, Field, Relationship
import sqlalchemy as sa
from sqlalchemy import func


class ExamResultStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    PENDING = "PENDING"
    WITHHELD = "WITHHELD"


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    SUSPENDED = "SUSPENDED"
    DROPPED = "DROPPED"


class Course(SQLModel, table=True):
    __tablename__ = "courses"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    code: str = Field(sa_column=sa.Column(sa.String(20), unique=True, nullable=False))
    total_semester: int = Field(default=8)

    semesters: List["Semester"] = Relationship(back_populates="course")


class AcademicYear(SQLModel, table=True):
    __tablename__ = "academic_years"

    id: Optional[int] = Field(default=None, primary_key=True)
    year: str = Field(max_length=20)
    start_date: date
    end_date: date
    is_active: bool = Field(default=False)


class Semester(SQLModel, table=True):
    __tablename__ = "semesters"

    id: Optional[int] = Field(default=None, primary_key=True)
    number: int
    code: str = Field(max_length=40)
    course_id: int = Field(foreign_key="courses.id", index=True)

    # Relationships
    course: Optional[Course] = Relationship(back_populates="semesters")
    subjects: List["Subject"] = Relationship(back_populates="semester")
    exams: List["Exam"] = Relationship(back_populates="semester")


class Subject(SQLModel, table=True):
    __tablename__ = "subjects"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    code: str = Field(max_length=40)
    credits: int = Field(default=0)
    semester_id: Optional[int] = Field(default=None, foreign_key="semesters.id", index=True)

    semester: Optional[Semester] = Relationship(back_populates="subjects")


class Exam(SQLModel, table=True):
    __tablename__ = "exams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=200)
    type: str = Field(default="FINAL", max_length=20)
    max_marks: float = Field(default=100)
    exam_date: Optional[datetime] = None
    semester_id: int = Field(foreign_key="semesters.id", index=True)

    semester: Optional[Semester] = Relationship(back_populates="exams")
    results: List["ExamResult"] = Relationship(back_populates="exam")


class ExamResult(SQLModel, table=True):
    __tablename__ = "exam_results"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: str = Field(
        sa_column=sa.Column(sa.String(64), nullable=False, index=True)
    )
    exam_id: int = Field(foreign_key="exams.id", index=True)
    status: ExamResultStatus = Field(
        default=ExamResultStatus.PENDING,
        sa_column=sa.Column(sa.String(10), nullable=False, index=True),
    )

    # Relationships
    exam: Optional[Exam] = Relationship(back_populates="results")
    grades: List["Grade"] = Relationship(
        back_populates="exam_result",
        sa_relationship_kwargs={"order_by": "Grade.id"},
    )


class Grade(SQLModel, table=True):
    __tablename__ = "grades"

    id: Optional[int] = Field(default=None, primary_key=True)
    exam_result_id: int = Field(foreign_key="exam_results.id", index=True)
    subject_id: int = Field(foreign_key="subjects.id", index=True)
    marks_obtained: float

    exam_result: Optional[ExamResult] = Relationship(back_populates="grades")
    subject: Optional[Subject] = Relationship()


class StudentEnrollment(SQLModel, table=True):
    __tablename__ = "student_enrollments"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: str = Field(
        sa_column=sa.Column(sa.String(64), nullable=False, index=True)
    )
    status: EnrollmentStatus = Field(
        default=EnrollmentStatus.ACTIVE,
        sa_column=sa.Column(sa.String(12), nullable=False, server_default="ACTIVE"),
    )
    current_semester: int = Field(default=1)
    total_credits: int = Field(default=0)
    completed_credits: int = Field(default=0)
    cgpa: Optional[float] = None
    enrollment_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=sa.Column(
            sa.DateTime(timezone=True),
            server_default=func.now(),
            nullable=False
        )
    )
    semester_id: Optional[int] = Field(default=None, foreign_key="semesters.id")
    academic_year_id: Optional[int] = Field(default=None, foreign_key="academic_years.id")
    course_id: Optional[int] = Field(default=None, foreign_key="courses.id")

    # Relationships
    semester: Optional[Semester] = Relationship()
    academic_year: Optional[AcademicYear] = Relationship()
    course: Optional[Course] = Relationship()
