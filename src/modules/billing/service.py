"""Service for Billing module."""

import logging
from datetime import date, datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.service import AuditAction, AuditService
from src.core.exceptions import InvalidStateError, NotFoundError
from src.modules.billing import allocator, calculator
from src.modules.billing.models import (
    CustomFee,
    CustomFeeStatus,
    PaymentRecordType,
    StudentPayment,
)
from src.modules.billing.schemas import (
    BillingCategory,
    BillingSummary,
    ClearPaymentHistoriesResult,
    CustomFeeCreate,
    CustomFeeResponse,
    CustomFeeStatusUpdate,
    LedgerResponse,
    PaymentCreate,
    PaymentResponse,
    StudentDuesRow,
)
from src.modules.billing.status import derive_status
from src.modules.courses.service import CourseService
from src.modules.students.models import Student, StudentStatus
from src.modules.students.repository import StudentRepository
from src.shared.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)


def _payment_values(payment: StudentPayment) -> dict:
    return {
        "payment_date": payment.payment_date.isoformat() if payment.payment_date else None,
        "amount": str(payment.amount),
        "payment_type": payment.payment_type,
        "reference_id": payment.reference_id,
    }


class BillingService:
    """Fee ledger operations: dues, payments, custom fees, bulk reset."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.students = StudentRepository(db)
        self.courses = CourseService(db)

    # --- Reads ---

    async def get_summary(self, student_id: int, as_of: date | None = None) -> BillingSummary:
        """Dues view of a student at as_of (today by default)."""
        student = await self.students.get_by_id(student_id)
        course = await self.courses.find_course(student.course_id)
        return calculator.compute_summary(student, course, as_of)

    async def get_ledger(self, student_id: int, as_of: date | None = None) -> LedgerResponse:
        student = await self.students.get_by_id(student_id)
        course = await self.courses.find_course(student.course_id)
        return self._ledger(student, course, as_of)

    def _ledger(self, student: Student, course, as_of: date | None = None) -> LedgerResponse:
        return LedgerResponse(
            student_id=student.id,
            status=student.status,
            payments=[PaymentResponse.model_validate(p) for p in student.payments],
            custom_fees=[CustomFeeResponse.model_validate(f) for f in student.custom_fees],
            summary=calculator.compute_summary(student, course, as_of),
        )

    # --- Payments ---

    async def apply_payment(
        self, student_id: int, data: PaymentCreate, recorded_by_id: int | None = None
    ) -> LedgerResponse:
        """
        Record a payment and re-derive the student's status.

        A custom payment also marks the referenced custom fee as paid. Nothing
        is written when validation fails.
        """
        async with self.students.transactional_update(student_id) as student:
            course = await self.courses.find_course(student.course_id)
            old_status = student.status

            result = allocator.apply_payment(
                student, course, data, confirm_overpayment=data.confirm_overpayment
            )
            student.payments.append(result.payment)
            student.status = result.status.value
            if result.custom_fee is not None:
                result.custom_fee.status = CustomFeeStatus.PAID.value
                result.custom_fee.date_paid = datetime.now(timezone.utc)
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.APPLY_PAYMENT,
                entity_type="Student",
                entity_id=student.id,
                entity_identifier=student.enrollment_number,
                user_id=recorded_by_id,
                old_values={"status": old_status},
                new_values={
                    "payment_id": result.payment.id,
                    "status": student.status,
                    "overpayment": result.payment.amount > result.item_due,
                    **_payment_values(result.payment),
                },
            )

        logger.info(
            "Payment %s of %s (%s) recorded for student %s",
            result.payment.id,
            result.payment.amount,
            result.payment.payment_type,
            student_id,
        )
        return await self.get_ledger(student_id)

    async def revert_payment(
        self, student_id: int, payment_id: int, reverted_by_id: int | None = None
    ) -> LedgerResponse:
        """Remove an erroneous payment record. Custom fee status is left as is."""
        async with self.students.transactional_update(student_id) as student:
            course = await self.courses.find_course(student.course_id)
            old_status = student.status

            result = allocator.revert_payment(student, course, payment_id)
            removed_values = _payment_values(result.payment)
            student.payments.remove(result.payment)
            student.status = result.status.value
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.REVERT_PAYMENT,
                entity_type="Student",
                entity_id=student.id,
                entity_identifier=student.enrollment_number,
                user_id=reverted_by_id,
                old_values={"payment_id": payment_id, "status": old_status, **removed_values},
                new_values={"status": student.status},
            )

        logger.info("Payment %s reverted for student %s", payment_id, student_id)
        return await self.get_ledger(student_id)

    # --- Custom fees ---

    async def add_custom_fee(
        self, student_id: int, data: CustomFeeCreate, created_by_id: int | None = None
    ) -> LedgerResponse:
        """
        Charge an ad-hoc fee. A fee created as paid gets a matching custom
        payment record in the same transaction, unless its amount is zero.
        """
        async with self.students.transactional_update(student_id) as student:
            course = await self.courses.find_course(student.course_id)
            amount = round_money(data.amount)
            is_paid = data.status == CustomFeeStatus.PAID
            paid_at = data.payment_date or datetime.now(timezone.utc)

            fee = CustomFee(
                name=data.name,
                amount=amount,
                status=data.status.value,
                date_paid=paid_at if is_paid else None,
            )
            student.custom_fees.append(fee)
            await self.db.flush()

            payment = None
            if is_paid and amount > ZERO:
                payment = StudentPayment(
                    student_id=student.id,
                    payment_date=paid_at,
                    amount=amount,
                    payment_type=PaymentRecordType.CUSTOM.value,
                    reference_id=str(fee.id),
                    remarks=f"Custom fee: {fee.name}",
                )
                student.payments.append(payment)
                student.status = derive_status(
                    student.status,
                    calculator.enrollment_paid(student),
                    calculator.effective_enrollment_fee(student, course),
                ).value
                await self.db.flush()

            await self.audit.log(
                action=AuditAction.ADD_CUSTOM_FEE,
                entity_type="CustomFee",
                entity_id=fee.id,
                entity_identifier=fee.name,
                user_id=created_by_id,
                new_values={
                    "student_id": student.id,
                    "amount": str(amount),
                    "status": fee.status,
                    "payment_id": payment.id if payment is not None else None,
                },
            )

        return await self.get_ledger(student_id)

    async def update_custom_fee_status(
        self,
        student_id: int,
        fee_id: int,
        data: CustomFeeStatusUpdate,
        updated_by_id: int | None = None,
    ) -> LedgerResponse:
        """Flip a custom fee between due and paid. Payments are not touched."""
        async with self.students.transactional_update(student_id) as student:
            fee = self._get_custom_fee(student, fee_id)
            old_values = {"status": fee.status}

            fee.status = data.status.value
            fee.date_paid = (
                datetime.now(timezone.utc) if data.status == CustomFeeStatus.PAID else None
            )
            await self.db.flush()

            await self.audit.log(
                action=AuditAction.UPDATE_CUSTOM_FEE_STATUS,
                entity_type="CustomFee",
                entity_id=fee.id,
                entity_identifier=fee.name,
                user_id=updated_by_id,
                old_values=old_values,
                new_values={"status": fee.status},
            )

        return await self.get_ledger(student_id)

    async def delete_custom_fee(
        self, student_id: int, fee_id: int, deleted_by_id: int | None = None
    ) -> LedgerResponse:
        """Delete a custom fee that is still due."""
        async with self.students.transactional_update(student_id) as student:
            fee = self._get_custom_fee(student, fee_id)
            if fee.is_paid:
                raise InvalidStateError(
                    f"Custom fee '{fee.name}' is paid and cannot be deleted",
                    details={"custom_fee_id": fee.id},
                )

            await self.audit.log(
                action=AuditAction.DELETE_CUSTOM_FEE,
                entity_type="CustomFee",
                entity_id=fee.id,
                entity_identifier=fee.name,
                user_id=deleted_by_id,
                old_values={"student_id": student.id, "amount": str(fee.amount)},
            )
            student.custom_fees.remove(fee)

        return await self.get_ledger(student_id)

    @staticmethod
    def _get_custom_fee(student: Student, fee_id: int) -> CustomFee:
        for fee in student.custom_fees:
            if fee.id == fee_id:
                return fee
        raise NotFoundError("Custom fee", fee_id)

    # --- Overview ---

    async def list_billing_overview(
        self, category: BillingCategory, as_of: date | None = None
    ) -> list[StudentDuesRow]:
        """
        Students of one billing tab with their totals.

        enrollment_pending: every student awaiting the enrollment fee
        dues: active students owing anything
        cleared: active students owing nothing
        """
        if category == BillingCategory.ENROLLMENT_PENDING:
            wanted_status = StudentStatus.ENROLLMENT_PENDING.value
        else:
            wanted_status = StudentStatus.ACTIVE.value
        students, _ = await self.students.list(status=wanted_status)
        courses = {course.id: course for course in await self.courses.list_courses()}

        rows = []
        for student in students:
            course = courses.get(student.course_id)
            summary = calculator.compute_summary(student, course, as_of)
            if category == BillingCategory.DUES and summary.total_due <= ZERO:
                continue
            if category == BillingCategory.CLEARED and summary.total_due > ZERO:
                continue
            rows.append(
                StudentDuesRow(
                    student_id=student.id,
                    enrollment_number=student.enrollment_number,
                    name=student.name,
                    course_id=student.course_id,
                    course_name=course.name if course is not None else None,
                    status=student.status,
                    total_billed=summary.total_billed,
                    total_paid=summary.total_paid,
                    total_due=summary.total_due,
                    enrollment_due=calculator.enrollment_due(student, course),
                )
            )
        return rows

    # --- Bulk reset ---

    async def clear_all_payment_histories(
        self, dry_run: bool = False, cleared_by_id: int | None = None
    ) -> ClearPaymentHistoriesResult:
        """
        Delete every payment, reset every student to enrollment_pending and
        every custom fee to due. With dry_run, only report what would change.
        """
        result = ClearPaymentHistoriesResult(
            students_reset=await self._count(select(func.count(Student.id))),
            payments_deleted=await self._count(select(func.count(StudentPayment.id))),
            custom_fees_reset=await self._count(
                select(func.count(CustomFee.id)).where(
                    CustomFee.status != CustomFeeStatus.DUE.value
                )
            ),
        )
        if dry_run:
            return result

        try:
            await self.db.execute(delete(StudentPayment))
            await self.db.execute(
                update(Student).values(status=StudentStatus.ENROLLMENT_PENDING.value)
            )
            await self.db.execute(
                update(CustomFee).values(status=CustomFeeStatus.DUE.value, date_paid=None)
            )
            await self.audit.log(
                action=AuditAction.CLEAR_PAYMENT_HISTORIES,
                entity_type="Student",
                entity_id=0,
                user_id=cleared_by_id,
                new_values=result.model_dump(),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        # Bulk statements bypass the identity map
        self.db.expire_all()
        logger.warning(
            "Payment histories cleared: %s payments deleted, %s students reset",
            result.payments_deleted,
            result.students_reset,
        )
        return result

    async def _count(self, query) -> int:
        return (await self.db.execute(query)).scalar() or 0
