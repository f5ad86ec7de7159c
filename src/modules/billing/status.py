"""Student status transitions.

Two kinds of transition exist. Derived ones follow the enrollment-fee ledger
and are re-evaluated after every apply and revert. Manual ones are admin
actions (leaving, completing) and are never derived from money.
"""

from decimal import Decimal

from src.core.exceptions import InvalidStateError
from src.modules.students.models import StudentStatus

MANUAL_TRANSITIONS: dict[StudentStatus, frozenset[StudentStatus]] = {
    StudentStatus.ENROLLMENT_PENDING: frozenset({StudentStatus.LEFT}),
    StudentStatus.ACTIVE: frozenset(
        {
            StudentStatus.LEFT,
            StudentStatus.COMPLETED_PAID,
            StudentStatus.COMPLETED_UNPAID,
        }
    ),
    StudentStatus.COMPLETED_PAID: frozenset(),
    StudentStatus.COMPLETED_UNPAID: frozenset(),
    StudentStatus.LEFT: frozenset(),
}


def derive_status(
    current: str,
    enrollment_paid: Decimal,
    enrollment_fee: Decimal,
    allow_demotion: bool = False,
) -> StudentStatus:
    """
    Status after a ledger change.

    enrollment_pending becomes active once the enrollment fee is covered (a
    zero fee is covered by any ledger change). An active student drops back
    to enrollment_pending only when allow_demotion is set, which reverting an
    enrollment payment does.
    Completed and left students are never touched.
    """
    status = StudentStatus(current)
    covered = enrollment_paid >= enrollment_fee

    if status == StudentStatus.ENROLLMENT_PENDING and covered:
        return StudentStatus.ACTIVE
    if status == StudentStatus.ACTIVE and allow_demotion and not covered:
        return StudentStatus.ENROLLMENT_PENDING
    return status


def ensure_manual_transition(current: str, target: str) -> StudentStatus:
    """Validate an admin status change and return the target status."""
    source = StudentStatus(current)
    destination = StudentStatus(target)
    if destination not in MANUAL_TRANSITIONS[source]:
        raise InvalidStateError(
            f"Cannot change student status from {source.value} to {destination.value}",
            details={"from": source.value, "to": destination.value},
        )
    return destination
