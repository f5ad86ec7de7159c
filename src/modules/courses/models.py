"""Course catalog: pricing model of each course."""

from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import TimestampedModel
from src.shared.utils.money import round_money


class PaymentType(StrEnum):
    """How a course bills after enrollment."""

    MONTHLY = "monthly"
    INSTALLMENT = "installment"


class Course(TimestampedModel):
    """A course offered by the academy.

    Monthly courses bill monthly_fee for every calendar month of the student's
    billing window. Installment courses bill the sequence of the plan the
    student selected at intake.
    """

    __tablename__ = "courses"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    enrollment_fee: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    payment_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentType.MONTHLY.value
    )
    monthly_fee: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )

    # Relationships
    payment_plans: Mapped[list["PaymentPlan"]] = relationship(
        "PaymentPlan",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="PaymentPlan.display_order",
    )
    exam_fees: Mapped[list["ExamFee"]] = relationship(
        "ExamFee",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="ExamFee.display_order",
    )

    @property
    def is_monthly(self) -> bool:
        return self.payment_type == PaymentType.MONTHLY.value

    @property
    def is_installment(self) -> bool:
        return self.payment_type == PaymentType.INSTALLMENT.value

    def get_plan(self, name: str | None) -> "PaymentPlan | None":
        """Plan by name, or None when the name is empty or no longer exists."""
        if not name:
            return None
        for plan in self.payment_plans:
            if plan.name == name:
                return plan
        return None


class PaymentPlan(TimestampedModel):
    """Named installment plan of a course.

    total_amount is the advertised price; dues are tracked against the
    installments sequence, which does not have to add up to it.
    """

    __tablename__ = "course_payment_plans"

    course_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    # Ordered installment amounts, stored as strings to keep Decimal precision
    installments: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    course: Mapped["Course"] = relationship("Course", back_populates="payment_plans")

    __table_args__ = (
        UniqueConstraint("course_id", "name", name="uq_course_payment_plan_name"),
    )

    @property
    def installment_amounts(self) -> list[Decimal]:
        return [round_money(amount) for amount in self.installments or []]


class ExamFee(TimestampedModel):
    """Flat named exam fee of a course."""

    __tablename__ = "course_exam_fees"

    course_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    course: Mapped["Course"] = relationship("Course", back_populates="exam_fees")

    __table_args__ = (
        UniqueConstraint("course_id", "name", name="uq_course_exam_fee_name"),
    )
