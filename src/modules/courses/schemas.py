"""Schemas for Courses module.

Payment plans and exam fees arrive as free-form JSON from the course form;
they are validated here, before anything reaches the models.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator, model_validator

from src.modules.courses.models import PaymentType
from src.shared.schemas.base import BaseSchema
from src.shared.utils.money import round_money


# --- Pricing model parts ---


class PaymentPlanSchema(BaseSchema):
    """Named installment plan."""

    name: str = Field(..., min_length=1, max_length=100)
    total_amount: Decimal = Field(..., ge=0)
    installments: list[Decimal] = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Plan name must not be blank")
        return v

    @field_validator("installments")
    @classmethod
    def validate_installments(cls, v: list[Decimal]) -> list[Decimal]:
        if any(amount <= 0 for amount in v):
            raise ValueError("Installment amounts must be positive")
        return [round_money(amount) for amount in v]


class ExamFeeSchema(BaseSchema):
    """Flat exam fee."""

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Exam fee name must not be blank")
        return v


def _ensure_unique_names(items: list, what: str) -> None:
    seen: set[str] = set()
    for item in items:
        if item.name in seen:
            raise ValueError(f"Duplicate {what} name: {item.name}")
        seen.add(item.name)


# --- Course Schemas ---


class CourseCreate(BaseSchema):
    """Schema for creating a course."""

    name: str = Field(..., min_length=1, max_length=200)
    enrollment_fee: Decimal = Field(Decimal("0"), ge=0)
    payment_type: PaymentType = PaymentType.MONTHLY
    monthly_fee: Decimal = Field(Decimal("0"), ge=0)
    payment_plans: list[PaymentPlanSchema] = Field(default_factory=list)
    exam_fees: list[ExamFeeSchema] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_pricing(self):
        if self.payment_type == PaymentType.MONTHLY and self.monthly_fee <= 0:
            raise ValueError("Monthly courses require a monthly fee greater than 0")
        _ensure_unique_names(self.payment_plans, "payment plan")
        _ensure_unique_names(self.exam_fees, "exam fee")
        return self


class CourseUpdate(BaseSchema):
    """Schema for updating a course. Plans and exam fees are replaced wholesale."""

    name: str | None = Field(None, min_length=1, max_length=200)
    enrollment_fee: Decimal | None = Field(None, ge=0)
    payment_type: PaymentType | None = None
    monthly_fee: Decimal | None = Field(None, ge=0)
    payment_plans: list[PaymentPlanSchema] | None = None
    exam_fees: list[ExamFeeSchema] | None = None

    @model_validator(mode="after")
    def validate_unique_names(self):
        if self.payment_plans is not None:
            _ensure_unique_names(self.payment_plans, "payment plan")
        if self.exam_fees is not None:
            _ensure_unique_names(self.exam_fees, "exam fee")
        return self


class PaymentPlanResponse(BaseSchema):
    name: str
    total_amount: Decimal
    installments: list[Decimal] = Field(validation_alias="installment_amounts")


class ExamFeeResponse(BaseSchema):
    name: str
    amount: Decimal


class CourseResponse(BaseSchema):
    """Schema for course response."""

    id: int
    name: str
    enrollment_fee: Decimal
    payment_type: str
    monthly_fee: Decimal
    payment_plans: list[PaymentPlanResponse]
    exam_fees: list[ExamFeeResponse]
    created_at: datetime
    updated_at: datetime
