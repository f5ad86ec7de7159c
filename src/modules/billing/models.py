"""Fee ledger models: payment records and custom fees owned by a student."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.database.base import Base, BigIntPK


class PaymentRecordType(StrEnum):
    """What a payment was made towards."""

    ENROLLMENT = "enrollment"
    MONTHLY = "monthly"  # reference_id: month label, e.g. "January 2024"
    INSTALLMENT = "installment"  # reference_id: "inst_<n>", 1-based
    EXAM = "exam"  # reference_id: exam fee name
    CUSTOM = "custom"  # reference_id: custom fee id
    PARTIAL = "partial"  # no reference


class CustomFeeStatus(StrEnum):
    DUE = "due"
    PAID = "paid"


class StudentPayment(Base):
    """
    Payment record in a student's history.

    Records are appended and removed, never edited. Removal is a correction of
    an erroneous entry (revert), not a refund.
    """

    __tablename__ = "student_payments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Date supplied by the caller, stored as-is
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    payment_type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    student: Mapped["Student"] = relationship("Student", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_student_payments_amount_positive"),
    )


class CustomFee(Base):
    """Ad-hoc fee charged to a single student (certificate, late fee, ...)."""

    __tablename__ = "custom_fees"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    student_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=CustomFeeStatus.DUE.value
    )
    date_created: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    date_paid: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    student: Mapped["Student"] = relationship("Student", back_populates="custom_fees")

    @property
    def is_paid(self) -> bool:
        return self.status == CustomFeeStatus.PAID.value


# Import for type hints
from src.modules.students.models import Student
