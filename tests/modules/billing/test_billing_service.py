"""Tests for BillingService (database-backed ledger operations)."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.audit.models import AuditLog
from src.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from src.modules.billing.models import CustomFeeStatus, PaymentRecordType, StudentPayment
from src.modules.billing.schemas import (
    BillingCategory,
    BillingItemType,
    CustomFeeCreate,
    CustomFeeStatusUpdate,
    PaymentCreate,
)
from src.modules.billing.service import BillingService
from src.modules.courses.service import CourseService
from src.modules.students.models import StudentStatus
from tests.factories import create_installment_course, create_monthly_course, create_student

PAID_AT = datetime(2024, 1, 20, 11, 0, tzinfo=timezone.utc)


def _payment(payment_type: PaymentRecordType, amount: str, reference_id: str | None = None, **kw):
    return PaymentCreate(
        payment_date=PAID_AT,
        amount=Decimal(amount),
        payment_type=payment_type,
        reference_id=reference_id,
        **kw,
    )


async def _payment_count(db_session: AsyncSession) -> int:
    return (await db_session.execute(select(func.count(StudentPayment.id)))).scalar()


class TestApplyAndRevert:
    """Tests for recording and reverting payments."""

    async def test_enrollment_payment_activates_student(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)

        ledger = await service.apply_payment(
            student.id, _payment(PaymentRecordType.ENROLLMENT, "500")
        )

        assert ledger.status == StudentStatus.ACTIVE.value
        assert len(ledger.payments) == 1
        assert ledger.payments[0].amount == Decimal("500.00")
        assert ledger.payments[0].payment_type == "enrollment"

        audit = (
            await db_session.execute(
                select(AuditLog).where(AuditLog.action == "APPLY_PAYMENT")
            )
        ).scalar_one()
        assert audit.entity_id == student.id
        assert audit.old_values == {"status": "enrollment_pending"}
        assert audit.new_values["status"] == "active"

    async def test_rejected_payment_writes_nothing(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course, duration_months=3)
        student_id = student.id
        service = BillingService(db_session)

        with pytest.raises(ValidationError):
            await service.apply_payment(
                student_id, _payment(PaymentRecordType.MONTHLY, "1000", "December 2024")
            )

        assert await _payment_count(db_session) == 0
        ledger = await service.get_ledger(student_id)
        assert ledger.status == StudentStatus.ENROLLMENT_PENDING.value

    async def test_overpayment_requires_confirmation(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        student_id = student.id
        service = BillingService(db_session)

        with pytest.raises(InvalidStateError):
            await service.apply_payment(
                student_id, _payment(PaymentRecordType.ENROLLMENT, "600")
            )
        ledger = await service.apply_payment(
            student_id,
            _payment(PaymentRecordType.ENROLLMENT, "600", confirm_overpayment=True),
        )

        assert ledger.status == StudentStatus.ACTIVE.value
        assert ledger.summary.total_paid == Decimal("600.00")

    async def test_revert_enrollment_demotes(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)
        ledger = await service.apply_payment(
            student.id, _payment(PaymentRecordType.ENROLLMENT, "500")
        )

        ledger = await service.revert_payment(student.id, ledger.payments[0].id)

        assert ledger.status == StudentStatus.ENROLLMENT_PENDING.value
        assert ledger.payments == []
        assert await _payment_count(db_session) == 0

    async def test_revert_keeps_completed_status(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)
        ledger = await service.apply_payment(
            student.id, _payment(PaymentRecordType.ENROLLMENT, "500")
        )
        student.status = StudentStatus.COMPLETED_PAID.value
        await db_session.commit()

        ledger = await service.revert_payment(student.id, ledger.payments[0].id)

        assert ledger.status == StudentStatus.COMPLETED_PAID.value

    async def test_revert_unknown_payment(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        student_id = student.id

        with pytest.raises(NotFoundError):
            await BillingService(db_session).revert_payment(student_id, 999)

    async def test_installment_pool(self, db_session: AsyncSession):
        course = await create_installment_course(db_session)
        student = await create_student(db_session, course, plan_name="Standard")
        service = BillingService(db_session)

        await service.apply_payment(student.id, _payment(PaymentRecordType.INSTALLMENT, "1000", "inst_1"))
        ledger = await service.apply_payment(student.id, _payment(PaymentRecordType.PARTIAL, "500"))

        installments = ledger.summary.items_of(BillingItemType.INSTALLMENT)
        assert [i.due for i in installments] == [
            Decimal("0.00"),
            Decimal("500.00"),
            Decimal("1000.00"),
        ]

    async def test_unknown_student(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await BillingService(db_session).apply_payment(
                12345, _payment(PaymentRecordType.ENROLLMENT, "500")
            )


class TestCustomFees:
    """Tests for custom fee operations."""

    async def test_prepaid_fee_synthesizes_one_payment(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)

        ledger = await service.add_custom_fee(
            student.id,
            CustomFeeCreate(name="Certificate", amount=Decimal("150"), status=CustomFeeStatus.PAID),
        )

        fee = ledger.custom_fees[0]
        custom_payments = [p for p in ledger.payments if p.payment_type == "custom"]
        assert fee.status == "paid"
        assert fee.date_paid is not None
        assert len(custom_payments) == 1
        assert custom_payments[0].reference_id == str(fee.id)
        assert custom_payments[0].amount == Decimal("150.00")

    async def test_prepaid_zero_fee_adds_no_payment(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)

        ledger = await BillingService(db_session).add_custom_fee(
            student.id,
            CustomFeeCreate(name="Waived certificate", amount=Decimal("0"), status=CustomFeeStatus.PAID),
        )

        assert ledger.payments == []
        assert ledger.custom_fees[0].status == "paid"
        assert ledger.custom_fees[0].date_paid is not None
        assert await _payment_count(db_session) == 0

    async def test_zero_payment_rejected_by_store(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        db_session.add(
            StudentPayment(
                student_id=student.id,
                payment_date=PAID_AT,
                amount=Decimal("0.00"),
                payment_type=PaymentRecordType.CUSTOM.value,
            )
        )

        with pytest.raises(IntegrityError):
            await db_session.flush()
        await db_session.rollback()

    async def test_due_fee_adds_no_payment(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)

        ledger = await BillingService(db_session).add_custom_fee(
            student.id, CustomFeeCreate(name="Late fee", amount=Decimal("100"))
        )

        assert ledger.payments == []
        assert ledger.custom_fees[0].status == "due"
        assert ledger.custom_fees[0].date_paid is None

    async def test_custom_payment_marks_fee_paid(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)
        ledger = await service.add_custom_fee(
            student.id, CustomFeeCreate(name="Certificate", amount=Decimal("150"))
        )
        fee_id = ledger.custom_fees[0].id

        ledger = await service.apply_payment(
            student.id, _payment(PaymentRecordType.CUSTOM, "150", str(fee_id))
        )

        assert ledger.custom_fees[0].status == "paid"
        assert ledger.custom_fees[0].date_paid is not None

        # Reverting the payment leaves the fee as it is
        ledger = await service.revert_payment(student.id, ledger.payments[0].id)
        assert ledger.custom_fees[0].status == "paid"

    async def test_update_status_sets_and_clears_date_paid(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)
        ledger = await service.add_custom_fee(
            student.id, CustomFeeCreate(name="Certificate", amount=Decimal("150"))
        )
        fee_id = ledger.custom_fees[0].id

        ledger = await service.update_custom_fee_status(
            student.id, fee_id, CustomFeeStatusUpdate(status=CustomFeeStatus.PAID)
        )
        assert ledger.custom_fees[0].date_paid is not None
        assert ledger.payments == []

        ledger = await service.update_custom_fee_status(
            student.id, fee_id, CustomFeeStatusUpdate(status=CustomFeeStatus.DUE)
        )
        assert ledger.custom_fees[0].status == "due"
        assert ledger.custom_fees[0].date_paid is None

    async def test_delete_only_while_due(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        student_id = student.id
        service = BillingService(db_session)
        ledger = await service.add_custom_fee(
            student_id,
            CustomFeeCreate(name="Certificate", amount=Decimal("150"), status=CustomFeeStatus.PAID),
        )
        paid_fee_id = ledger.custom_fees[0].id
        ledger = await service.add_custom_fee(
            student_id, CustomFeeCreate(name="Late fee", amount=Decimal("100"))
        )
        due_fee_id = ledger.custom_fees[1].id

        with pytest.raises(InvalidStateError):
            await service.delete_custom_fee(student_id, paid_fee_id)

        ledger = await service.delete_custom_fee(student_id, due_fee_id)
        assert [f.id for f in ledger.custom_fees] == [paid_fee_id]

    async def test_unknown_fee(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        student_id = student.id

        with pytest.raises(NotFoundError):
            await BillingService(db_session).update_custom_fee_status(
                student_id, 999, CustomFeeStatusUpdate(status=CustomFeeStatus.PAID)
            )


class TestSummaryAndOverview:
    """Tests for read operations."""

    async def test_summary_as_of(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course, enrollment_date=date(2024, 1, 15))

        summary = await BillingService(db_session).get_summary(student.id, date(2024, 3, 10))

        assert len(summary.items_of(BillingItemType.MONTHLY)) == 3
        assert summary.total_due == Decimal("3500.00")

    async def test_deleted_course_degrades(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        await CourseService(db_session).delete_course(course.id)

        summary = await BillingService(db_session).get_summary(student.id, date(2024, 3, 10))

        assert summary.items_of(BillingItemType.MONTHLY) == []
        assert summary.total_billed == Decimal("0.00")

    async def test_overview_categories(self, db_session: AsyncSession):
        course = await create_monthly_course(db_session, enrollment_fee="500", monthly_fee="1000")
        pending = await create_student(db_session, course, enrollment_number="CSA240001")
        owing = await create_student(db_session, course, enrollment_number="CSA240002")
        cleared = await create_student(
            db_session, course, enrollment_number="CSA240003", duration_months=1
        )
        service = BillingService(db_session)
        await service.apply_payment(owing.id, _payment(PaymentRecordType.ENROLLMENT, "500"))
        await service.apply_payment(cleared.id, _payment(PaymentRecordType.ENROLLMENT, "500"))
        await service.apply_payment(
            cleared.id, _payment(PaymentRecordType.MONTHLY, "1000", "January 2024")
        )
        as_of = date(2024, 3, 10)

        pending_rows = await service.list_billing_overview(BillingCategory.ENROLLMENT_PENDING, as_of)
        dues_rows = await service.list_billing_overview(BillingCategory.DUES, as_of)
        cleared_rows = await service.list_billing_overview(BillingCategory.CLEARED, as_of)

        assert [r.student_id for r in pending_rows] == [pending.id]
        assert pending_rows[0].enrollment_due == Decimal("500.00")
        assert [r.student_id for r in dues_rows] == [owing.id]
        assert dues_rows[0].total_due == Decimal("3000.00")
        assert [r.student_id for r in cleared_rows] == [cleared.id]


class TestClearPaymentHistories:
    """Tests for the bulk reset."""

    async def _setup(self, db_session: AsyncSession) -> int:
        course = await create_monthly_course(db_session)
        student = await create_student(db_session, course)
        service = BillingService(db_session)
        await service.apply_payment(student.id, _payment(PaymentRecordType.ENROLLMENT, "500"))
        await service.add_custom_fee(
            student.id,
            CustomFeeCreate(name="Certificate", amount=Decimal("150"), status=CustomFeeStatus.PAID),
        )
        return student.id

    async def test_dry_run_changes_nothing(self, db_session: AsyncSession):
        student_id = await self._setup(db_session)
        service = BillingService(db_session)

        result = await service.clear_all_payment_histories(dry_run=True)

        assert result.payments_deleted == 2
        assert result.students_reset == 1
        assert result.custom_fees_reset == 1
        assert await _payment_count(db_session) == 2
        assert (await service.get_ledger(student_id)).status == StudentStatus.ACTIVE.value

    async def test_clear(self, db_session: AsyncSession):
        student_id = await self._setup(db_session)
        service = BillingService(db_session)

        await service.clear_all_payment_histories()

        ledger = await service.get_ledger(student_id)
        assert ledger.payments == []
        assert ledger.status == StudentStatus.ENROLLMENT_PENDING.value
        assert ledger.custom_fees[0].status == "due"
        assert ledger.custom_fees[0].date_paid is None
