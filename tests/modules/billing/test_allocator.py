"""Tests for payment allocation and status derivation (no database)."""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from src.core.exceptions import (
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.modules.billing import allocator, calculator
from src.modules.billing.models import CustomFeeStatus, PaymentRecordType
from src.modules.billing.schemas import PaymentCreate
from src.modules.billing.status import (
    MANUAL_TRANSITIONS,
    derive_status,
    ensure_manual_transition,
)
from src.modules.students.models import StudentStatus
from tests.factories import (
    build_custom_fee,
    build_installment_course,
    build_monthly_course,
    build_payment,
    build_student,
)

PAID_AT = datetime(2024, 2, 5, 9, 30, tzinfo=timezone.utc)


def _payment(payment_type: PaymentRecordType, amount: str, reference_id: str | None = None):
    return PaymentCreate(
        payment_date=PAID_AT,
        amount=Decimal(amount),
        payment_type=payment_type,
        reference_id=reference_id,
    )


class TestDeriveStatus:
    """Tests for derived status transitions."""

    def test_pending_becomes_active_when_covered(self):
        assert derive_status("enrollment_pending", Decimal("500"), Decimal("500")) == (
            StudentStatus.ACTIVE
        )

    def test_pending_stays_when_short(self):
        assert derive_status("enrollment_pending", Decimal("499"), Decimal("500")) == (
            StudentStatus.ENROLLMENT_PENDING
        )

    def test_zero_fee_activates(self):
        assert derive_status("enrollment_pending", Decimal("0"), Decimal("0")) == (
            StudentStatus.ACTIVE
        )

    def test_active_not_demoted_without_flag(self):
        assert derive_status("active", Decimal("0"), Decimal("500")) == StudentStatus.ACTIVE

    def test_active_demoted_on_revert(self):
        assert derive_status("active", Decimal("0"), Decimal("500"), allow_demotion=True) == (
            StudentStatus.ENROLLMENT_PENDING
        )

    @pytest.mark.parametrize("status", ["completed_paid", "completed_unpaid", "left"])
    def test_archived_never_touched(self, status):
        assert derive_status(status, Decimal("0"), Decimal("500"), allow_demotion=True) == (
            StudentStatus(status)
        )


class TestManualTransitions:
    """Tests for admin status changes."""

    @pytest.mark.parametrize(
        "source,target",
        [
            ("enrollment_pending", "left"),
            ("active", "left"),
            ("active", "completed_paid"),
            ("active", "completed_unpaid"),
        ],
    )
    def test_allowed(self, source, target):
        assert ensure_manual_transition(source, target) == StudentStatus(target)

    @pytest.mark.parametrize(
        "source,target",
        [
            ("enrollment_pending", "active"),
            ("enrollment_pending", "completed_paid"),
            ("active", "enrollment_pending"),
            ("left", "active"),
            ("completed_paid", "left"),
            ("completed_unpaid", "completed_paid"),
        ],
    )
    def test_rejected(self, source, target):
        with pytest.raises(InvalidStateError):
            ensure_manual_transition(source, target)

    def test_archived_states_are_terminal(self):
        for status in (
            StudentStatus.COMPLETED_PAID,
            StudentStatus.COMPLETED_UNPAID,
            StudentStatus.LEFT,
        ):
            assert MANUAL_TRANSITIONS[status] == frozenset()


class TestApplyPayment:
    """Tests for allocator.apply_payment."""

    def test_enrollment_payment_activates(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(course)

        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.ENROLLMENT, "500")
        )

        assert result.status == StudentStatus.ACTIVE
        assert len(result.payment_history) == 1
        assert result.payment.payment_date == PAID_AT
        assert result.payment.reference_id is None

    def test_partial_enrollment_keeps_pending(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(course)

        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.ENROLLMENT, "200")
        )

        assert result.status == StudentStatus.ENROLLMENT_PENDING

    def test_student_is_not_mutated(self):
        course = build_monthly_course()
        student = build_student(course)

        allocator.apply_payment(student, course, _payment(PaymentRecordType.ENROLLMENT, "500"))

        assert student.payments == []
        assert student.status == StudentStatus.ENROLLMENT_PENDING.value

    def test_zero_fee_activates_on_any_payment(self):
        course = build_monthly_course(enrollment_fee="0")
        student = build_student(course)

        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.MONTHLY, "1000", "January 2024")
        )

        assert result.status == StudentStatus.ACTIVE

    def test_never_demotes_on_apply(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(course, status=StudentStatus.COMPLETED_UNPAID)

        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.MONTHLY, "1000", "January 2024")
        )

        assert result.status == StudentStatus.COMPLETED_UNPAID

    def test_non_positive_amount(self):
        course = build_monthly_course()
        student = build_student(course)
        payment = _payment(PaymentRecordType.ENROLLMENT, "100").model_copy(
            update={"amount": Decimal("0")}
        )

        with pytest.raises(InvalidAmountError):
            allocator.apply_payment(student, course, payment)

    def test_month_outside_window(self):
        course = build_monthly_course()
        student = build_student(course, duration_months=3)

        with pytest.raises(ValidationError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.MONTHLY, "1000", "April 2024")
            )

    def test_future_month_inside_window_allowed(self):
        course = build_monthly_course()
        student = build_student(course, duration_months=6)

        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.MONTHLY, "1000", "June 2024")
        )

        assert result.payment.reference_id == "June 2024"

    def test_monthly_payment_on_installment_course(self):
        course = build_installment_course()
        student = build_student(course, plan_name="Standard")

        with pytest.raises(ValidationError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.MONTHLY, "1000", "January 2024")
            )

    def test_overpaying_settled_month_needs_confirmation(self):
        course = build_monthly_course()
        student = build_student(
            course,
            payments=[build_payment(PaymentRecordType.MONTHLY, "1000", "January 2024", 1)],
        )
        payment = _payment(PaymentRecordType.MONTHLY, "100", "January 2024")

        with pytest.raises(InvalidStateError):
            allocator.apply_payment(student, course, payment)

        result = allocator.apply_payment(student, course, payment, confirm_overpayment=True)
        assert result.item_due == Decimal("0.00")
        assert len(result.payment_history) == 2

    def test_installment_reference_must_exist(self):
        course = build_installment_course()
        student = build_student(course, plan_name="Standard")

        with pytest.raises(ValidationError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.INSTALLMENT, "1000", "inst_4")
            )
        with pytest.raises(ValidationError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.INSTALLMENT, "1000", "first")
            )

    def test_installment_capped_by_plan_outstanding(self):
        course = build_installment_course()
        student = build_student(course, plan_name="Standard")

        with pytest.raises(InvalidStateError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.INSTALLMENT, "3000.01", "inst_1")
            )
        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.INSTALLMENT, "3000", "inst_1")
        )
        assert result.item_due == Decimal("3000.00")

    def test_installment_without_plan(self):
        course = build_installment_course()
        student = build_student(course, plan_name=None)

        with pytest.raises(ValidationError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.INSTALLMENT, "1000", "inst_1")
            )

    def test_unknown_exam_fee(self):
        course = build_monthly_course(exam_fees=[("Final exam", "300")])
        student = build_student(course)

        with pytest.raises(NotFoundError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.EXAM, "300", "Midterm")
            )

    def test_custom_payment_returns_fee(self):
        course = build_monthly_course()
        student = build_student(course, custom_fees=[build_custom_fee(7, "Certificate", "150")])

        result = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.CUSTOM, "150", "7")
        )

        assert result.custom_fee is student.custom_fees[0]
        # flipping the fee is the caller's job
        assert student.custom_fees[0].status == CustomFeeStatus.DUE.value

    def test_custom_payment_on_paid_fee(self):
        course = build_monthly_course()
        student = build_student(
            course,
            custom_fees=[build_custom_fee(7, "Certificate", "150", CustomFeeStatus.PAID)],
        )

        with pytest.raises(InvalidStateError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.CUSTOM, "150", "7"),
                confirm_overpayment=True,
            )

    def test_unknown_custom_fee(self):
        course = build_monthly_course()
        student = build_student(course)

        with pytest.raises(NotFoundError):
            allocator.apply_payment(
                student, course, _payment(PaymentRecordType.CUSTOM, "150", "99")
            )

    def test_partial_capped_by_total_due(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(course)
        # As of the payment date (5 Feb 2024): 500 + January + February
        with pytest.raises(InvalidStateError):
            allocator.apply_payment(student, course, _payment(PaymentRecordType.PARTIAL, "2500.01"))

        result = allocator.apply_payment(student, course, _payment(PaymentRecordType.PARTIAL, "2500"))
        assert result.payment.reference_id is None


class TestRevertPayment:
    """Tests for allocator.revert_payment."""

    def test_revert_enrollment_demotes_active(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(
            course,
            status=StudentStatus.ACTIVE,
            payments=[build_payment(PaymentRecordType.ENROLLMENT, "500", payment_id=11)],
        )

        result = allocator.revert_payment(student, course, 11)

        assert result.payment_history == []
        assert result.status == StudentStatus.ENROLLMENT_PENDING
        assert result.payment.id == 11

    def test_revert_never_demotes_completed(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(
            course,
            status=StudentStatus.COMPLETED_PAID,
            payments=[build_payment(PaymentRecordType.ENROLLMENT, "500", payment_id=11)],
        )

        result = allocator.revert_payment(student, course, 11)

        assert result.status == StudentStatus.COMPLETED_PAID

    def test_revert_other_payment_keeps_active(self):
        course = build_monthly_course(enrollment_fee="500")
        student = build_student(
            course,
            status=StudentStatus.ACTIVE,
            payments=[
                build_payment(PaymentRecordType.ENROLLMENT, "500", payment_id=11),
                build_payment(PaymentRecordType.MONTHLY, "1000", "January 2024", 12),
            ],
        )

        result = allocator.revert_payment(student, course, 12)

        assert [p.id for p in result.payment_history] == [11]
        assert result.status == StudentStatus.ACTIVE

    def test_revert_other_payment_keeps_active_after_fee_raise(self):
        course = build_monthly_course(enrollment_fee="500")
        # activated at 500, override raised to 600 afterwards
        student = build_student(
            course,
            status=StudentStatus.ACTIVE,
            overridden_enrollment_fee="600",
            payments=[
                build_payment(PaymentRecordType.ENROLLMENT, "500", payment_id=11),
                build_payment(PaymentRecordType.MONTHLY, "1000", "January 2024", 12),
            ],
        )

        result = allocator.revert_payment(student, course, 12)

        assert result.status == StudentStatus.ACTIVE

        result = allocator.revert_payment(student, course, 11)

        assert result.status == StudentStatus.ENROLLMENT_PENDING

    def test_revert_is_inverse_of_apply(self):
        course = build_monthly_course()
        student = build_student(course)
        before = calculator.compute_summary(student, course, date(2024, 3, 1))

        applied = allocator.apply_payment(
            student, course, _payment(PaymentRecordType.MONTHLY, "1000", "January 2024")
        )
        applied.payment.id = 21
        student.payments = applied.payment_history
        student.status = applied.status.value
        reverted = allocator.revert_payment(student, course, 21)
        student.payments = reverted.payment_history

        assert calculator.compute_summary(student, course, date(2024, 3, 1)) == before

    def test_unknown_payment(self):
        course = build_monthly_course()
        student = build_student(course)

        with pytest.raises(NotFoundError):
            allocator.revert_payment(student, course, 404)
