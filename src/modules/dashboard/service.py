"""Service for dashboard summary (main page)."""

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.modules.billing import calculator
from src.modules.billing.models import StudentPayment
from src.modules.courses.service import CourseService
from src.modules.students.models import Student, StudentStatus
from src.modules.students.repository import StudentRepository
from src.shared.utils.dates import add_months, first_of_month, month_label
from src.shared.utils.money import ZERO, round_money, sum_money


class DashboardService:
    """Aggregates data for main page cards."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.students = StudentRepository(db)
        self.courses = CourseService(db)

    async def get_summary(self, as_of: date | None = None) -> dict:
        """
        Build dashboard summary.

        Outstanding dues come from the dues calculator for every current
        (active or enrollment_pending) student. Revenue is every payment ever
        recorded. Registrations count enrollments in the as_of month.
        """
        as_of = as_of or date.today()
        month_start = first_of_month(as_of)
        next_month_start = add_months(month_start, 1)

        current_students, _ = await self.students.list(archived=False)
        current_students = [
            s
            for s in current_students
            if s.status in (StudentStatus.ACTIVE.value, StudentStatus.ENROLLMENT_PENDING.value)
        ]
        courses = {course.id: course for course in await self.courses.list_courses()}

        dues = [
            calculator.compute_summary(s, courses.get(s.course_id), as_of).total_due
            for s in current_students
        ]

        r = await self.db.execute(select(func.coalesce(func.sum(StudentPayment.amount), 0)))
        total_revenue = round_money(r.scalar() or 0)

        r = await self.db.execute(
            select(func.count(Student.id)).where(
                Student.enrollment_date >= month_start,
                Student.enrollment_date < next_month_start,
            )
        )
        new_registrations = r.scalar() or 0

        return {
            "active_students_count": len(current_students),
            "outstanding_dues": sum_money(dues),
            "outstanding_dues_count": sum(1 for due in dues if due > ZERO),
            "total_revenue": total_revenue,
            "new_registrations_this_month": new_registrations,
            "as_of": as_of,
            "month_label": month_label(as_of),
        }
