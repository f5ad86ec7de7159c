from collections.abc import Iterable
from datetime import date, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.modules.students.models import Student


class _Enrolled(Protocol):
    enrollment_date: date | datetime | None


class _EnrollmentRow:
    __slots__ = ("enrollment_date",)

    def __init__(self, enrollment_date: date | None):
        self.enrollment_date = enrollment_date


def format_enrollment_number(prefix: str, year: int, sequence: int) -> str:
    """PREFIX + 2-digit year + 4-digit sequence, e.g. CSA240001."""
    return f"{prefix}{year % 100:02d}{sequence:04d}"


def next_enrollment_number(
    existing_students: Iterable[_Enrolled],
    enrollment_year: int,
    prefix: str | None = None,
) -> str:
    """
    Derive the next enrollment number for a student enrolled in enrollment_year.

    The sequence is the count of existing students whose enrollment_date falls in
    the same calendar year, plus one. Nothing is stored: two callers scanning the
    same snapshot get the same number, so concurrent registrations must be
    serialized by the caller (the unique constraint on students.enrollment_number
    turns a collision into an IntegrityError).

    Examples:
        CSA240001, CSA240002, ... CSA250001
    """
    if prefix is None:
        prefix = settings.enrollment_number_prefix
    same_year = sum(
        1
        for student in existing_students
        if student.enrollment_date is not None
        and student.enrollment_date.year == enrollment_year
    )
    return format_enrollment_number(prefix, enrollment_year, same_year + 1)


class EnrollmentNumberGenerator:
    """Scans the students table and derives the next enrollment number."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def generate(self, enrollment_year: int, prefix: str | None = None) -> str:
        result = await self.session.execute(select(Student.enrollment_date))
        existing = [_EnrollmentRow(enrollment_date=d) for d in result.scalars().all()]
        return next_enrollment_number(existing, enrollment_year, prefix)


async def get_enrollment_number(
    session: AsyncSession, enrollment_year: int, prefix: str | None = None
) -> str:
    """Convenience function to generate an enrollment number."""
    generator = EnrollmentNumberGenerator(session)
    return await generator.generate(enrollment_year, prefix)
