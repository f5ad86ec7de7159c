"""Student model."""

from datetime import date
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import TimestampedModel


class StudentStatus(StrEnum):
    """Lifecycle stage of a student."""

    ENROLLMENT_PENDING = "enrollment_pending"
    ACTIVE = "active"
    COMPLETED_PAID = "completed_paid"
    COMPLETED_UNPAID = "completed_unpaid"
    LEFT = "left"


ARCHIVED_STATUSES = (
    StudentStatus.COMPLETED_PAID,
    StudentStatus.COMPLETED_UNPAID,
    StudentStatus.LEFT,
)


class DurationUnit(StrEnum):
    MONTHS = "months"
    YEARS = "years"


class Student(TimestampedModel):
    """Student enrolled on a course."""

    __tablename__ = "students"

    enrollment_number: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, index=True
    )  # CSA + YY + NNNN

    # Personal info
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    father_name: Mapped[str] = mapped_column(String(200), nullable=False)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    mobile: Mapped[str] = mapped_column(String(10), nullable=False)
    aadhar: Mapped[str | None] = mapped_column(String(12), nullable=True)
    # Opaque URL from the photo store
    photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Course
    enrollment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    # Not a cascading reference: deleting a course must not touch the ledger
    course_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True
    )
    course_duration_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    course_duration_unit: Mapped[str] = mapped_column(
        String(10), nullable=False, default=DurationUnit.MONTHS.value
    )
    selected_payment_plan_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Per-student fee overrides; None means the course default applies
    overridden_enrollment_fee: Mapped[Decimal | None] = mapped_column(
        Numeric(15, 2), nullable=True
    )
    overridden_monthly_fee: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=StudentStatus.ENROLLMENT_PENDING.value, index=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    payments: Mapped[list["StudentPayment"]] = relationship(
        "StudentPayment",
        back_populates="student",
        cascade="all, delete-orphan",
        order_by="StudentPayment.id",
    )
    custom_fees: Mapped[list["CustomFee"]] = relationship(
        "CustomFee",
        back_populates="student",
        cascade="all, delete-orphan",
        order_by="CustomFee.id",
    )

    @property
    def duration_months(self) -> int:
        """Course duration normalized to months."""
        value = self.course_duration_value or 0
        if self.course_duration_unit == DurationUnit.YEARS.value:
            return value * 12
        return value

    @property
    def is_archived(self) -> bool:
        return self.status in ARCHIVED_STATUSES


# Import at the end to avoid circular imports
from src.modules.billing.models import CustomFee, StudentPayment
from src.modules.courses.models import Course
