"""
Dues calculator.

Every function here is a pure function of (student, course, as_of): no clock
reads beyond defaulting as_of to today, no session access, no mutation. The
student and course arguments are the ORM rows (or any object with the same
attributes); course may be None when the student's course has been deleted.

Rules:
    - enrollment due  = max(0, effective enrollment fee - enrollment payments)
    - monthly courses bill every calendar month from the enrollment month
      through the as_of month, capped by the course duration; each month is
      settled only by monthly payments carrying its label
    - installment courses pour installment + partial payments into one pool
      and drain it against the selected plan in declared order
    - exam fees are settled by exam payments carrying the fee name
    - custom fees are due exactly while their status is "due"
    - total_due = max(0, total_billed - total_paid); nothing is ever negative
"""

from collections.abc import Iterable, Iterator
from datetime import date, datetime
from decimal import Decimal

from src.modules.billing.models import PaymentRecordType
from src.modules.billing.schemas import (
    BillingItem,
    BillingItemType,
    BillingSummary,
    TimeRemaining,
)
from src.shared.utils.dates import (
    add_months,
    first_of_month,
    month_label,
    months_between,
    parse_month_label,
    remaining_months_and_days,
)
from src.shared.utils.money import ZERO, clamp_due, round_money, sum_money

INSTALLMENT_REFERENCE_PREFIX = "inst_"


def _as_date(value: date | datetime | None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value


def installment_reference(number: int) -> str:
    """Reference id of the 1-based installment number, e.g. inst_1."""
    return f"{INSTALLMENT_REFERENCE_PREFIX}{number}"


def parse_installment_reference(reference_id: str) -> int:
    """1-based installment number from 'inst_<n>'. Raises ValueError otherwise."""
    if not reference_id.startswith(INSTALLMENT_REFERENCE_PREFIX):
        raise ValueError(f"Invalid installment reference: {reference_id!r}")
    number = reference_id[len(INSTALLMENT_REFERENCE_PREFIX):]
    if not number.isdigit() or int(number) < 1:
        raise ValueError(f"Invalid installment reference: {reference_id!r}")
    return int(number)


# --- Payments ---


def paid_of_type(payments: Iterable, *payment_types: PaymentRecordType) -> Decimal:
    """Sum of payments of the given types, whatever they reference."""
    wanted = {t.value for t in payment_types}
    return sum_money(p.amount for p in payments if p.payment_type in wanted)


def paid_for(payments: Iterable, payment_type: PaymentRecordType, reference_id: str) -> Decimal:
    """Sum of payments of one type that target one reference."""
    return sum_money(
        p.amount
        for p in payments
        if p.payment_type == payment_type.value and p.reference_id == reference_id
    )


# --- Effective fees ---


def effective_enrollment_fee(student, course) -> Decimal:
    """Student override if present, else the course default (0 without a course)."""
    if student.overridden_enrollment_fee is not None:
        return round_money(student.overridden_enrollment_fee)
    if course is None:
        return ZERO
    return round_money(course.enrollment_fee or 0)


def effective_monthly_fee(student, course) -> Decimal:
    """Student override if present, else the course default (0 without a course)."""
    if student.overridden_monthly_fee is not None:
        return round_money(student.overridden_monthly_fee)
    if course is None:
        return ZERO
    return round_money(course.monthly_fee or 0)


# --- Enrollment ---


def enrollment_paid(student) -> Decimal:
    return paid_of_type(student.payments, PaymentRecordType.ENROLLMENT)


def enrollment_due(student, course) -> Decimal:
    return clamp_due(effective_enrollment_fee(student, course), enrollment_paid(student))


def enrollment_item(student, course) -> BillingItem:
    fee = effective_enrollment_fee(student, course)
    paid = enrollment_paid(student)
    return BillingItem(
        item_type=BillingItemType.ENROLLMENT,
        reference_id=None,
        label="Enrollment fee",
        amount=fee,
        paid=min(fee, paid),
        due=clamp_due(fee, paid),
    )


# --- Monthly ---


def months_elapsed(enrollment_date: date, as_of: date) -> int:
    """Calendar months from the enrollment month through the as_of month, inclusive."""
    enrollment_date = _as_date(enrollment_date)
    as_of = _as_date(as_of)
    if as_of < first_of_month(enrollment_date):
        return 0
    return months_between(enrollment_date, as_of) + 1


def billable_month_count(enrollment_date: date, duration_months: int, as_of: date) -> int:
    return min(max(0, months_elapsed(enrollment_date, as_of)), max(0, duration_months))


def iter_billable_months(
    enrollment_date: date, duration_months: int, as_of: date
) -> Iterator[date]:
    """
    First day of every billable month, oldest first.

    A month is billable once it has begun and while it lies inside the course
    duration. The sequence is finite and a fresh call restarts it.
    """
    start = first_of_month(_as_date(enrollment_date))
    for offset in range(billable_month_count(enrollment_date, duration_months, as_of)):
        yield add_months(start, offset)


def is_month_in_window(student, label: str) -> bool:
    """Whether label names a month of the student's whole billing window, begun or not."""
    try:
        month = parse_month_label(label)
    except ValueError:
        return False
    start = first_of_month(_as_date(student.enrollment_date))
    offset = months_between(start, month)
    return 0 <= offset < student.duration_months


def month_due(student, course, label: str) -> Decimal:
    fee = effective_monthly_fee(student, course)
    return clamp_due(fee, paid_for(student.payments, PaymentRecordType.MONTHLY, label))


def iter_monthly_items(student, course, as_of: date | None = None) -> Iterator[BillingItem]:
    """One item per billable month. Empty unless the course bills monthly."""
    if course is None or not course.is_monthly:
        return
    fee = effective_monthly_fee(student, course)
    for month in iter_billable_months(
        student.enrollment_date, student.duration_months, _as_date(as_of)
    ):
        label = month_label(month)
        paid = paid_for(student.payments, PaymentRecordType.MONTHLY, label)
        yield BillingItem(
            item_type=BillingItemType.MONTHLY,
            reference_id=label,
            label=label,
            amount=fee,
            paid=min(fee, paid),
            due=clamp_due(fee, paid),
        )


# --- Installments ---


def selected_plan(student, course):
    """The student's plan on an installment course, or None if it cannot be resolved."""
    if course is None or not course.is_installment:
        return None
    return course.get_plan(student.selected_payment_plan_name)


def allocate_pool(amounts: Iterable[Decimal], pool: Decimal) -> list[Decimal]:
    """
    Drain pool against amounts in order; return what each amount absorbed.

    Examples:
        >>> allocate_pool([Decimal("1000")] * 3, Decimal("1500"))
        [Decimal('1000'), Decimal('500'), Decimal('0')]
    """
    remaining = max(ZERO, pool)
    absorbed: list[Decimal] = []
    for amount in amounts:
        take = min(amount, remaining)
        absorbed.append(take)
        remaining -= take
    return absorbed


def installment_pool(student) -> Decimal:
    return paid_of_type(student.payments, PaymentRecordType.INSTALLMENT, PaymentRecordType.PARTIAL)


def installment_items(student, course) -> list[BillingItem]:
    plan = selected_plan(student, course)
    if plan is None:
        return []
    amounts = plan.installment_amounts
    absorbed = allocate_pool(amounts, installment_pool(student))
    return [
        BillingItem(
            item_type=BillingItemType.INSTALLMENT,
            reference_id=installment_reference(number),
            label=f"{plan.name} - installment {number}",
            amount=amount,
            paid=round_money(taken),
            due=clamp_due(amount, taken),
        )
        for number, (amount, taken) in enumerate(zip(amounts, absorbed), start=1)
    ]


def installment_outstanding(student, course) -> Decimal:
    return sum_money(item.due for item in installment_items(student, course))


# --- Exam and custom fees ---


def exam_fee_items(student, course) -> list[BillingItem]:
    if course is None:
        return []
    items = []
    for fee in course.exam_fees:
        amount = round_money(fee.amount)
        paid = paid_for(student.payments, PaymentRecordType.EXAM, fee.name)
        items.append(
            BillingItem(
                item_type=BillingItemType.EXAM,
                reference_id=fee.name,
                label=fee.name,
                amount=amount,
                paid=min(amount, paid),
                due=clamp_due(amount, paid),
            )
        )
    return items


def exam_fee_due(student, course, name: str) -> Decimal | None:
    """Due of the named exam fee, or None when the course has no such fee."""
    for item in exam_fee_items(student, course):
        if item.reference_id == name:
            return item.due
    return None


def custom_fee_items(student) -> list[BillingItem]:
    # Status is authoritative for custom fees; payments are not re-matched
    items = []
    for fee in student.custom_fees:
        amount = round_money(fee.amount)
        is_paid = fee.is_paid
        items.append(
            BillingItem(
                item_type=BillingItemType.CUSTOM,
                reference_id=str(fee.id) if fee.id is not None else None,
                label=fee.name,
                amount=amount,
                paid=amount if is_paid else ZERO,
                due=ZERO if is_paid else amount,
            )
        )
    return items


# --- Course progress ---


def course_end_date(student) -> date:
    return add_months(_as_date(student.enrollment_date), student.duration_months)


def time_remaining(student, as_of: date | None = None) -> TimeRemaining:
    as_of = _as_date(as_of)
    end = course_end_date(student)
    if as_of >= end:
        return TimeRemaining(course_end_date=end, finished=True)
    months, days = remaining_months_and_days(as_of, end)
    return TimeRemaining(course_end_date=end, finished=False, months=months, days=days)


# --- Summary ---


def billing_breakdown(student, course, as_of: date | None = None) -> list[BillingItem]:
    as_of = _as_date(as_of)
    return [
        enrollment_item(student, course),
        *iter_monthly_items(student, course, as_of),
        *installment_items(student, course),
        *exam_fee_items(student, course),
        *custom_fee_items(student),
    ]


def compute_summary(student, course, as_of: date | datetime | None = None) -> BillingSummary:
    """
    Authoritative dues view of one student.

    course may be None (deleted course): the summary then carries only the
    enrollment override, custom fees and what was paid.
    """
    as_of = _as_date(as_of)
    breakdown = billing_breakdown(student, course, as_of)
    total_billed = sum_money(item.amount for item in breakdown)
    total_paid = sum_money(p.amount for p in student.payments)
    return BillingSummary(
        as_of=as_of,
        total_billed=total_billed,
        total_paid=total_paid,
        total_due=clamp_due(total_billed, total_paid),
        breakdown=breakdown,
        time_remaining=time_remaining(student, as_of),
    )
