"""Pydantic schemas for Billing module."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import Field, field_validator, model_validator

from src.modules.billing.models import CustomFeeStatus, PaymentRecordType
from src.shared.schemas.base import BaseSchema


class BillingItemType(StrEnum):
    """Kinds of billable items."""

    ENROLLMENT = "enrollment"
    MONTHLY = "monthly"
    INSTALLMENT = "installment"
    EXAM = "exam"
    CUSTOM = "custom"


# --- Dues view ---


class BillingItem(BaseSchema):
    """One due-trackable unit: enrollment fee, a month, an installment, an exam or custom fee."""

    item_type: BillingItemType
    reference_id: str | None = None  # what a payment must carry to target this item
    label: str
    amount: Decimal  # billed
    paid: Decimal  # allocated from payments
    due: Decimal  # max(0, amount - paid)


class TimeRemaining(BaseSchema):
    """Informational course progress; never gates billing."""

    course_end_date: date
    finished: bool
    months: int = 0
    days: int = 0


class BillingSummary(BaseSchema):
    """Aggregate financial view of a student at as_of."""

    as_of: date
    total_billed: Decimal
    total_paid: Decimal
    total_due: Decimal
    breakdown: list[BillingItem]
    time_remaining: TimeRemaining

    def items_of(self, item_type: BillingItemType) -> list[BillingItem]:
        return [item for item in self.breakdown if item.item_type == item_type]


# --- Ledger ---


class PaymentCreate(BaseSchema):
    """Schema for recording a payment against a student."""

    payment_date: datetime
    amount: Decimal = Field(gt=0, description="Payment amount (must be positive)")
    payment_type: PaymentRecordType
    reference_id: str | None = Field(None, max_length=100)
    remarks: str | None = None
    confirm_overpayment: bool = Field(
        False, description="Allow paying more than the targeted item's due amount"
    )

    @field_validator("reference_id")
    @classmethod
    def blank_reference_to_none(cls, v: str | None) -> str | None:
        if v is not None:
            v = v.strip()
        return v or None

    @model_validator(mode="after")
    def require_reference(self):
        needs_reference = (
            PaymentRecordType.MONTHLY,
            PaymentRecordType.EXAM,
            PaymentRecordType.CUSTOM,
        )
        if self.payment_type in needs_reference and not self.reference_id:
            raise ValueError(f"reference_id is required for {self.payment_type.value} payments")
        return self


class PaymentResponse(BaseSchema):
    """Schema for payment response."""

    id: int
    student_id: int
    payment_date: datetime
    amount: Decimal
    payment_type: str
    reference_id: str | None
    remarks: str | None
    created_at: datetime | None = None


class CustomFeeCreate(BaseSchema):
    """Schema for adding a custom fee, optionally already paid."""

    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    status: CustomFeeStatus = CustomFeeStatus.DUE
    payment_date: datetime | None = Field(
        None, description="Date of the synthesized payment when created as paid"
    )


class CustomFeeStatusUpdate(BaseSchema):
    status: CustomFeeStatus


class CustomFeeResponse(BaseSchema):
    id: int
    student_id: int
    name: str
    amount: Decimal
    status: str
    date_created: datetime | None = None
    date_paid: datetime | None = None


class LedgerResponse(BaseSchema):
    """Student ledger after a write: history, custom fees, status and fresh totals."""

    student_id: int
    status: str
    payments: list[PaymentResponse]
    custom_fees: list[CustomFeeResponse]
    summary: BillingSummary


# --- Overview ---


class BillingCategory(StrEnum):
    """Tabs of the billing overview."""

    ENROLLMENT_PENDING = "enrollment_pending"
    DUES = "dues"
    CLEARED = "cleared"


class StudentDuesRow(BaseSchema):
    student_id: int
    enrollment_number: str
    name: str
    course_id: int | None
    course_name: str | None
    status: str
    total_billed: Decimal
    total_paid: Decimal
    total_due: Decimal
    enrollment_due: Decimal


class ClearPaymentHistoriesResult(BaseSchema):
    students_reset: int
    payments_deleted: int
    custom_fees_reset: int
