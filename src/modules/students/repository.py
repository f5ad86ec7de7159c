"""Data access for the student aggregate (student + payments + custom fees)."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import NotFoundError
from src.modules.students.models import ARCHIVED_STATUSES, Student


class StudentRepository:
    """Loads and persists students with their ledger collections."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _aggregate_query(self):
        return select(Student).options(
            selectinload(Student.payments),
            selectinload(Student.custom_fees),
        )

    async def get_by_id(self, student_id: int, for_update: bool = False) -> Student:
        """Student with payments and custom fees loaded. Raises NotFoundError."""
        query = self._aggregate_query().where(Student.id == student_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query.execution_options(populate_existing=True))
        student = result.scalar_one_or_none()
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    async def list(
        self,
        *,
        status: str | None = None,
        course_id: int | None = None,
        archived: bool | None = None,
        search: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> tuple[list[Student], int]:
        """Students matching the filters, newest enrollment first, with total count."""
        query = self._aggregate_query()

        if status:
            query = query.where(Student.status == status)
        if course_id is not None:
            query = query.where(Student.course_id == course_id)
        if archived is True:
            query = query.where(Student.status.in_([s.value for s in ARCHIVED_STATUSES]))
        elif archived is False:
            query = query.where(Student.status.notin_([s.value for s in ARCHIVED_STATUSES]))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Student.name.ilike(pattern),
                    Student.father_name.ilike(pattern),
                    Student.mobile.ilike(pattern),
                    Student.enrollment_number.ilike(pattern),
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Student.enrollment_date.desc(), Student.id.desc())
        if page is not None and limit is not None:
            query = query.offset((page - 1) * limit).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    @asynccontextmanager
    async def transactional_update(self, student_id: int) -> AsyncIterator[Student]:
        """
        Lock a student for the duration of a ledger change.

        The block receives the locked student; its changes (and anything else
        added to the session, such as audit rows) commit together on exit and
        roll back together if the block raises.
        """
        try:
            student = await self.get_by_id(student_id, for_update=True)
            yield student
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
