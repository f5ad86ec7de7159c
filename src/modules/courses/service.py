"""Service for Courses module."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import DuplicateError, NotFoundError, ValidationError
from src.modules.courses.models import Course, ExamFee, PaymentPlan, PaymentType
from src.modules.courses.schemas import (
    CourseCreate,
    CourseUpdate,
    ExamFeeSchema,
    PaymentPlanSchema,
)
from src.shared.utils.money import round_money


def _build_plans(plans: list[PaymentPlanSchema]) -> list[PaymentPlan]:
    return [
        PaymentPlan(
            name=plan.name,
            total_amount=round_money(plan.total_amount),
            installments=[str(amount) for amount in plan.installments],
            display_order=index,
        )
        for index, plan in enumerate(plans)
    ]


def _build_exam_fees(fees: list[ExamFeeSchema]) -> list[ExamFee]:
    return [
        ExamFee(name=fee.name, amount=round_money(fee.amount), display_order=index)
        for index, fee in enumerate(fees)
    ]


def _pricing_snapshot(course: Course) -> dict:
    return {
        "enrollment_fee": str(course.enrollment_fee),
        "payment_type": course.payment_type,
        "monthly_fee": str(course.monthly_fee),
        "payment_plans": [
            {"name": p.name, "installments": list(p.installments)} for p in course.payment_plans
        ],
        "exam_fees": [{"name": f.name, "amount": str(f.amount)} for f in course.exam_fees],
    }


class CourseService:
    """Service for managing the course catalog."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def _ensure_unique_name(self, name: str, exclude_id: int | None = None) -> None:
        query = select(Course.id).where(Course.name == name)
        if exclude_id is not None:
            query = query.where(Course.id != exclude_id)
        existing = await self.db.execute(query)
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError("Course", "name", name)

    async def create_course(self, data: CourseCreate, created_by_id: int | None = None) -> Course:
        """Create a new course with its plans and exam fees."""
        await self._ensure_unique_name(data.name)

        course = Course(
            name=data.name,
            enrollment_fee=round_money(data.enrollment_fee),
            payment_type=data.payment_type.value,
            monthly_fee=round_money(data.monthly_fee),
            payment_plans=_build_plans(data.payment_plans),
            exam_fees=_build_exam_fees(data.exam_fees),
        )
        self.db.add(course)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.CREATE,
            entity_type="Course",
            entity_id=course.id,
            entity_identifier=course.name,
            user_id=created_by_id,
            new_values=_pricing_snapshot(course),
        )

        await self.db.commit()
        return await self.get_course_by_id(course.id)

    async def get_course_by_id(self, course_id: int) -> Course:
        """Get course by ID with plans and exam fees loaded."""
        course = await self.find_course(course_id)
        if course is None:
            raise NotFoundError("Course", course_id)
        return course

    async def find_course(self, course_id: int | None) -> Course | None:
        """Course by ID, or None for a missing or deleted course."""
        if course_id is None:
            return None
        result = await self.db.execute(
            select(Course)
            .where(Course.id == course_id)
            .options(selectinload(Course.payment_plans), selectinload(Course.exam_fees))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_courses(self) -> list[Course]:
        result = await self.db.execute(
            select(Course)
            .options(selectinload(Course.payment_plans), selectinload(Course.exam_fees))
            .order_by(Course.name)
        )
        return list(result.scalars().all())

    async def update_course(
        self, course_id: int, data: CourseUpdate, updated_by_id: int | None = None
    ) -> Course:
        """Update a course. Existing students keep their plan name; a renamed or
        removed plan simply stops producing installment dues for them."""
        course = await self.get_course_by_id(course_id)
        old_values = _pricing_snapshot(course)

        payment_type = data.payment_type.value if data.payment_type else course.payment_type
        monthly_fee = data.monthly_fee if data.monthly_fee is not None else course.monthly_fee
        if payment_type == PaymentType.MONTHLY.value and monthly_fee <= 0:
            raise ValidationError(
                "Monthly courses require a monthly fee greater than 0", field="monthly_fee"
            )

        if data.name is not None and data.name != course.name:
            await self._ensure_unique_name(data.name, exclude_id=course_id)
            course.name = data.name
        if data.enrollment_fee is not None:
            course.enrollment_fee = round_money(data.enrollment_fee)
        if data.payment_type is not None:
            course.payment_type = data.payment_type.value
        if data.monthly_fee is not None:
            course.monthly_fee = round_money(data.monthly_fee)
        # Old rows are flushed out first so re-used names do not hit the
        # (course_id, name) unique constraints.
        if data.payment_plans is not None:
            course.payment_plans.clear()
        if data.exam_fees is not None:
            course.exam_fees.clear()
        await self.db.flush()
        if data.payment_plans is not None:
            course.payment_plans.extend(_build_plans(data.payment_plans))
        if data.exam_fees is not None:
            course.exam_fees.extend(_build_exam_fees(data.exam_fees))

        await self.db.flush()
        await self.audit.log(
            action=AuditAction.UPDATE,
            entity_type="Course",
            entity_id=course.id,
            entity_identifier=course.name,
            user_id=updated_by_id,
            old_values=old_values,
            new_values=_pricing_snapshot(course),
        )

        await self.db.commit()
        return await self.get_course_by_id(course_id)

    async def delete_course(self, course_id: int, deleted_by_id: int | None = None) -> None:
        """Delete a course. Students enrolled on it keep their ledger; their
        summaries lose the monthly/installment component."""
        course = await self.get_course_by_id(course_id)

        await self.audit.log(
            action=AuditAction.DELETE,
            entity_type="Course",
            entity_id=course.id,
            entity_identifier=course.name,
            user_id=deleted_by_id,
            old_values=_pricing_snapshot(course),
        )
        await self.db.delete(course)
        await self.db.commit()
