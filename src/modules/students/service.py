"""Service for Students module."""

from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.documents.number_generator import get_enrollment_number
from src.core.exceptions import ValidationError
from src.modules.billing.status import ensure_manual_transition
from src.modules.courses.models import Course
from src.modules.courses.service import CourseService
from src.modules.students.models import Student, StudentStatus
from src.modules.students.repository import StudentRepository
from src.modules.students.schemas import StudentCreate, StudentStatusUpdate, StudentUpdate
from src.shared.utils.money import round_money


def _audit_value(value):
    if isinstance(value, (date, Decimal)):
        return str(value)
    if hasattr(value, "value"):
        return value.value
    return value


class StudentService:
    """Service for managing students."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.repository = StudentRepository(db)
        self.courses = CourseService(db)

    @staticmethod
    def _resolve_plan_name(course: Course | None, plan_name: str | None) -> str | None:
        """
        Validate the plan selection against the course.

        Installment courses need a plan that exists on the course; monthly
        courses never keep one.
        """
        if course is None or course.is_monthly:
            return None
        if not course.payment_plans:
            raise ValidationError(
                f"Course '{course.name}' has no payment plans to enroll on",
                field="selected_payment_plan_name",
            )
        plan_name = (plan_name or "").strip()
        if not plan_name:
            raise ValidationError(
                "A payment plan must be selected for installment courses",
                field="selected_payment_plan_name",
            )
        if course.get_plan(plan_name) is None:
            raise ValidationError(
                f"Course '{course.name}' has no payment plan named '{plan_name}'",
                field="selected_payment_plan_name",
            )
        return plan_name

    async def create_student(self, data: StudentCreate, created_by_id: int | None = None) -> Student:
        """Enroll a new student. The student starts in enrollment_pending."""
        course = await self.courses.get_course_by_id(data.course_id)
        plan_name = self._resolve_plan_name(course, data.selected_payment_plan_name)

        enrollment_date = data.enrollment_date or date.today()
        enrollment_number = await get_enrollment_number(self.db, enrollment_date.year)

        student = Student(
            enrollment_number=enrollment_number,
            name=data.name,
            father_name=data.father_name,
            date_of_birth=data.date_of_birth,
            mobile=data.mobile,
            aadhar=data.aadhar,
            photo_url=data.photo_url,
            enrollment_date=enrollment_date,
            course_id=course.id,
            course_duration_value=data.course_duration_value,
            course_duration_unit=data.course_duration_unit.value,
            selected_payment_plan_name=plan_name,
            overridden_enrollment_fee=(
                round_money(data.overridden_enrollment_fee)
                if data.overridden_enrollment_fee is not None
                else None
            ),
            overridden_monthly_fee=(
                round_money(data.overridden_monthly_fee)
                if data.overridden_monthly_fee is not None
                else None
            ),
            status=StudentStatus.ENROLLMENT_PENDING.value,
            notes=data.notes,
        )
        self.db.add(student)
        await self.db.flush()

        await self.audit.log(
            action=AuditAction.CREATE,
            entity_type="Student",
            entity_id=student.id,
            entity_identifier=enrollment_number,
            user_id=created_by_id,
            new_values={
                "name": data.name,
                "course_id": course.id,
                "enrollment_date": str(enrollment_date),
                "selected_payment_plan_name": plan_name,
            },
        )

        await self.db.commit()
        return await self.get_student_by_id(student.id)

    async def get_student_by_id(self, student_id: int) -> Student:
        return await self.repository.get_by_id(student_id)

    async def list_students(
        self,
        status: StudentStatus | None = None,
        course_id: int | None = None,
        archived: bool | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[list[Student], int]:
        """List students with optional filters. archived=True lists completed and left."""
        return await self.repository.list(
            status=status.value if status else None,
            course_id=course_id,
            archived=archived,
            search=search,
            page=page,
            limit=limit,
        )

    async def update_student(
        self, student_id: int, data: StudentUpdate, updated_by_id: int | None = None
    ) -> Student:
        """Update identity, duration, plan selection or fee overrides."""
        student = await self.get_student_by_id(student_id)
        changes = data.model_dump(exclude_unset=True)

        if "selected_payment_plan_name" in changes:
            course = await self.courses.find_course(student.course_id)
            changes["selected_payment_plan_name"] = self._resolve_plan_name(
                course, changes["selected_payment_plan_name"]
            )
        for field in ("overridden_enrollment_fee", "overridden_monthly_fee"):
            if changes.get(field) is not None:
                changes[field] = round_money(changes[field])
        # Required columns cannot be cleared
        for field in ("name", "father_name", "mobile", "course_duration_value", "course_duration_unit"):
            if field in changes and changes[field] is None:
                raise ValidationError(f"{field} cannot be empty", field=field)

        old_values = {}
        new_values = {}
        for field, value in changes.items():
            current = getattr(student, field)
            if _audit_value(current) == _audit_value(value):
                continue
            old_values[field] = _audit_value(current)
            setattr(student, field, _audit_value(value) if field == "course_duration_unit" else value)
            new_values[field] = _audit_value(value)

        if new_values:
            await self.audit.log(
                action=AuditAction.UPDATE,
                entity_type="Student",
                entity_id=student.id,
                entity_identifier=student.enrollment_number,
                user_id=updated_by_id,
                old_values=old_values,
                new_values=new_values,
            )

        await self.db.commit()
        return await self.get_student_by_id(student_id)

    async def change_status(
        self, student_id: int, data: StudentStatusUpdate, changed_by_id: int | None = None
    ) -> Student:
        """
        Admin status change: leave, or complete with or without dues.

        Enrollment activation is not set here; it follows the enrollment fee.
        """
        student = await self.get_student_by_id(student_id)
        target = ensure_manual_transition(student.status, data.status)

        old_status = student.status
        student.status = target.value

        await self.audit.log(
            action=AuditAction.CHANGE_STATUS,
            entity_type="Student",
            entity_id=student.id,
            entity_identifier=student.enrollment_number,
            user_id=changed_by_id,
            old_values={"status": old_status},
            new_values={"status": target.value},
            comment=data.comment,
        )

        await self.db.commit()
        return await self.get_student_by_id(student_id)
