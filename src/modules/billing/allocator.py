"""
Payment allocator.

apply_payment and revert_payment validate a ledger change against the dues
calculator and return the resulting payment history and student status.
Neither touches a session nor mutates the student; BillingService persists
the result.
"""

from dataclasses import dataclass
from decimal import Decimal

from src.core.exceptions import (
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.modules.billing import calculator
from src.modules.billing.models import CustomFee, PaymentRecordType, StudentPayment
from src.modules.billing.schemas import PaymentCreate
from src.modules.billing.status import derive_status
from src.modules.students.models import StudentStatus
from src.shared.utils.money import round_money

# Payments that never carry a reference
_UNREFERENCED = (PaymentRecordType.ENROLLMENT, PaymentRecordType.PARTIAL)


@dataclass
class AllocationResult:
    payment_history: list[StudentPayment]
    status: StudentStatus
    payment: StudentPayment | None = None  # record appended or removed
    custom_fee: CustomFee | None = None  # fee the payment settles, if any
    item_due: Decimal | None = None


def _find_custom_fee(student, reference_id: str) -> CustomFee:
    for fee in student.custom_fees:
        if str(fee.id) == reference_id:
            return fee
    raise NotFoundError("Custom fee", reference_id)


def _item_due(student, course, payment: PaymentCreate) -> tuple[Decimal, CustomFee | None]:
    """Due of the item the payment targets; raises when the target does not resolve."""
    payment_type = PaymentRecordType(payment.payment_type)
    reference_id = payment.reference_id

    if payment_type == PaymentRecordType.ENROLLMENT:
        return calculator.enrollment_due(student, course), None

    if payment_type == PaymentRecordType.MONTHLY:
        if course is None or not course.is_monthly:
            raise ValidationError("Student's course is not billed monthly", field="payment_type")
        if not reference_id or not calculator.is_month_in_window(student, reference_id):
            raise ValidationError(
                f"Month '{reference_id}' is outside the student's course period",
                field="reference_id",
            )
        return calculator.month_due(student, course, reference_id), None

    if payment_type == PaymentRecordType.INSTALLMENT:
        plan = calculator.selected_plan(student, course)
        if plan is None:
            raise ValidationError(
                "Student has no resolvable installment plan", field="payment_type"
            )
        if reference_id is not None:
            try:
                number = calculator.parse_installment_reference(reference_id)
            except ValueError:
                raise ValidationError(
                    f"Invalid installment reference '{reference_id}'", field="reference_id"
                ) from None
            if number > len(plan.installment_amounts):
                raise ValidationError(
                    f"Plan '{plan.name}' has no installment {number}", field="reference_id"
                )
        return calculator.installment_outstanding(student, course), None

    if payment_type == PaymentRecordType.EXAM:
        due = calculator.exam_fee_due(student, course, reference_id or "")
        if due is None:
            raise NotFoundError("Exam fee", reference_id)
        return due, None

    if payment_type == PaymentRecordType.CUSTOM:
        fee = _find_custom_fee(student, reference_id or "")
        if fee.is_paid:
            raise InvalidStateError(
                f"Custom fee '{fee.name}' is already paid",
                details={"custom_fee_id": fee.id},
            )
        return round_money(fee.amount), fee

    # Partial payments count against everything owed on the payment date
    summary = calculator.compute_summary(student, course, payment.payment_date)
    return summary.total_due, None


def apply_payment(
    student,
    course,
    payment: PaymentCreate,
    confirm_overpayment: bool = False,
) -> AllocationResult:
    """
    Validate a payment and return the history with the new record appended.

    Raises:
        InvalidAmountError: amount is zero or negative
        ValidationError / NotFoundError: reference does not resolve
        InvalidStateError: amount exceeds the item's due and the overpayment
            was not confirmed, or the custom fee is already paid
    """
    amount = payment.amount
    if amount is None or amount <= 0:
        raise InvalidAmountError(amount)
    amount = round_money(amount)

    due, custom_fee = _item_due(student, course, payment)
    if amount > due and not confirm_overpayment:
        raise InvalidStateError(
            f"Payment of {amount} exceeds the amount due ({due}). "
            "Confirm the overpayment to record it anyway.",
            details={"amount": str(amount), "due": str(due)},
        )

    payment_type = PaymentRecordType(payment.payment_type)
    record = StudentPayment(
        student_id=student.id,
        payment_date=payment.payment_date,
        amount=amount,
        payment_type=payment_type.value,
        reference_id=None if payment_type in _UNREFERENCED else payment.reference_id,
        remarks=payment.remarks,
    )
    history = [*student.payments, record]
    status = derive_status(
        student.status,
        calculator.paid_of_type(history, PaymentRecordType.ENROLLMENT),
        calculator.effective_enrollment_fee(student, course),
    )
    return AllocationResult(
        payment_history=history,
        status=status,
        payment=record,
        custom_fee=custom_fee,
        item_due=due,
    )


def revert_payment(student, course, payment_id: int) -> AllocationResult:
    """
    Remove one payment and re-derive status as if it never existed.

    Only reverting an enrollment payment may demote an active student back to
    enrollment_pending. Custom fee status is left alone.
    """
    removed = next((p for p in student.payments if p.id == payment_id), None)
    if removed is None:
        raise NotFoundError("Payment", payment_id)

    history = [p for p in student.payments if p is not removed]
    status = derive_status(
        student.status,
        calculator.paid_of_type(history, PaymentRecordType.ENROLLMENT),
        calculator.effective_enrollment_fee(student, course),
        allow_demotion=removed.payment_type == PaymentRecordType.ENROLLMENT.value,
    )
    return AllocationResult(payment_history=history, status=status, payment=removed)
