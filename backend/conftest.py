import os

# Tests run against an in-memory SQLite database; set before campus is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import asyncio
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

from campus.core.database import SessionLocal, engine, init_db
from campus.academics.models import (
    AcademicYear,
    Course,
    Exam,
    ExamResult,
    Grade,
    Semester,
    StudentEnrollment,
    Subject,
)


class FakeRedis:
    """In-memory stand-in for the handful of list commands the queue uses"""

    def __init__(self):
        self.lists: Dict[str, List[str]] = {}
        self.closed = False

    def _list(self, key: str) -> List[str]:
        return self.lists.setdefault(key, [])

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True

    async def lpush(self, key, *values):
        # yield so concurrent producers actually interleave
        await asyncio.sleep(0)
        for value in values:
            self._list(key).insert(0, value)
        return len(self._list(key))

    async def rpush(self, key, *values):
        self._list(key).extend(values)
        return len(self._list(key))

    async def llen(self, key):
        return len(self.lists.get(key, []))

    async def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        return list(items[start:] if end == -1 else items[start:end + 1])

    async def lrem(self, key, count, value):
        items = self.lists.get(key, [])
        removed = 0
        while value in items and (count == 0 or removed < count):
            items.remove(value)
            removed += 1
        return removed

    async def ltrim(self, key, start, end):
        items = self.lists.get(key, [])
        self.lists[key] = items[start:] if end == -1 else items[start:end + 1]
        return True

    async def lmove(self, source, destination, src="LEFT", dest="RIGHT"):
        items = self.lists.get(source, [])
        if not items:
            return None
        value = items.pop() if src == "RIGHT" else items.pop(0)
        if dest == "LEFT":
            self._list(destination).insert(0, value)
        else:
            self._list(destination).append(value)
        return value

    async def blmove(self, source, destination, timeout, src="LEFT", dest="RIGHT"):
        return await self.lmove(source, destination, src, dest)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def db_session():
    """Fresh tables for every test"""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        SQLModel.metadata.drop_all(bind=engine)


@pytest.fixture
def client(fake_redis):
    """Test client whose email queue talks to the in-memory Redis"""
    from campus.core.limiter import limiter
    from campus.main import app

    with patch("redis.asyncio.from_url", return_value=fake_redis):
        with TestClient(app) as test_client:
            yield test_client

    limiter.reset()
    SQLModel.metadata.drop_all(bind=engine)


class AcademicFactory:
    """Builds a small programme (course, year, semesters) and student records"""

    def __init__(self, db):
        self.db = db
        self.course = Course(name="B.Tech Computer Science", code="BTCS", total_semester=8)
        self.year = AcademicYear(
            year="2024-2025",
            start_date=date(2024, 7, 1),
            end_date=date(2025, 6, 30),
            is_active=True,
        )
        db.add(self.course)
        db.add(self.year)
        db.commit()
        self.semesters: Dict[int, Semester] = {}

    def semester(self, number: int) -> Semester:
        if number not in self.semesters:
            semester = Semester(number=number, code=f"BTCS-S{number}", course_id=self.course.id)
            self.db.add(semester)
            self.db.commit()
            self.semesters[number] = semester
        return self.semesters[number]

    def result(
        self,
        student_id: str,
        marks: float,
        credits: int,
        status: str = "PASS",
        semester: int = 1,
        max_marks: float = 100,
        graded: bool = True,
    ) -> ExamResult:
        sem = self.semester(semester)
        subject = Subject(name=f"Subject {credits}", code=f"SUB{credits}", credits=credits, semester_id=sem.id)
        exam = Exam(name="End Semester", max_marks=max_marks, semester_id=sem.id)
        self.db.add(subject)
        self.db.add(exam)
        self.db.commit()

        result = ExamResult(student_id=student_id, exam_id=exam.id, status=status)
        self.db.add(result)
        self.db.commit()

        if graded:
            self.db.add(Grade(exam_result_id=result.id, subject_id=subject.id, marks_obtained=marks))
            self.db.commit()
        return result

    def enrollment(
        self,
        student_id: str,
        current_semester: int = 1,
        status: str = "ACTIVE",
        total_semester: Optional[int] = None,
    ) -> StudentEnrollment:
        course = self.course
        if total_semester is not None:
            course = Course(name="Diploma", code=f"DIP{total_semester}", total_semester=total_semester)
            self.db.add(course)
            self.db.commit()

        enrollment = StudentEnrollment(
            student_id=student_id,
            status=status,
            current_semester=current_semester,
            total_credits=160,
            completed_credits=20 * (current_semester - 1),
            cgpa=3.1,
            enrollment_date=datetime(2024, 7, 15, tzinfo=timezone.utc),
            semester_id=self.semester(current_semester).id,
            academic_year_id=self.year.id,
            course_id=course.id,
        )
        self.db.add(enrollment)
        self.db.commit()
        return enrollment


@pytest.fixture
def factory(db_session):
    return AcademicFactory(db_session)
