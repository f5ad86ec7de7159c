"""Schemas for Students module."""

import re
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.modules.students.models import DurationUnit, StudentStatus


# Indian mobile: 10 digits, optionally written with a +91 / 91 / 0 prefix
MOBILE_REGEX = re.compile(r"^[0-9]{10}$")
AADHAR_REGEX = re.compile(r"^[0-9]{12}$")


def normalize_mobile(value: str) -> str:
    """Strip separators and country prefix; the stored form is 10 digits."""
    normalized = re.sub(r"[\s\-()]", "", value)
    if normalized.startswith("+91") and len(normalized) == 13:
        normalized = normalized[3:]
    elif normalized.startswith("91") and len(normalized) == 12:
        normalized = normalized[2:]
    elif normalized.startswith("0") and len(normalized) == 11:
        normalized = normalized[1:]

    if not MOBILE_REGEX.match(normalized):
        raise ValueError("Mobile number must have exactly 10 digits")
    return normalized


def normalize_aadhar(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = re.sub(r"[\s\-]", "", value)
    if not normalized:
        return None
    if not AADHAR_REGEX.match(normalized):
        raise ValueError("Aadhar number must have exactly 12 digits")
    return normalized


# --- Student Schemas ---


class StudentCreate(BaseModel):
    """Schema for enrolling a student on a course."""

    name: str = Field(..., min_length=1, max_length=200)
    father_name: str = Field(..., min_length=1, max_length=200)
    date_of_birth: date | None = None
    mobile: str = Field(..., min_length=10, max_length=20)
    aadhar: str | None = Field(None, max_length=20)
    photo_url: str | None = None
    enrollment_date: date | None = None  # defaults to today
    course_id: int
    course_duration_value: int = Field(..., ge=1, le=240)
    course_duration_unit: DurationUnit = DurationUnit.MONTHS
    selected_payment_plan_name: str | None = Field(None, max_length=100)
    overridden_enrollment_fee: Decimal | None = Field(None, ge=0)
    overridden_monthly_fee: Decimal | None = Field(None, gt=0)
    notes: str | None = None

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: str) -> str:
        return normalize_mobile(v)

    @field_validator("aadhar")
    @classmethod
    def validate_aadhar(cls, v: str | None) -> str | None:
        return normalize_aadhar(v)

    @field_validator("name", "father_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class StudentUpdate(BaseModel):
    """
    Schema for updating a student.

    Only fields present in the request are applied; sending null for a fee
    override removes it so the course default applies again.
    """

    name: str | None = Field(None, min_length=1, max_length=200)
    father_name: str | None = Field(None, min_length=1, max_length=200)
    date_of_birth: date | None = None
    mobile: str | None = Field(None, min_length=10, max_length=20)
    aadhar: str | None = Field(None, max_length=20)
    photo_url: str | None = None
    course_duration_value: int | None = Field(None, ge=1, le=240)
    course_duration_unit: DurationUnit | None = None
    selected_payment_plan_name: str | None = Field(None, max_length=100)
    overridden_enrollment_fee: Decimal | None = Field(None, ge=0)
    overridden_monthly_fee: Decimal | None = Field(None, gt=0)
    notes: str | None = None

    @field_validator("mobile")
    @classmethod
    def validate_mobile(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return normalize_mobile(v)

    @field_validator("aadhar")
    @classmethod
    def validate_aadhar(cls, v: str | None) -> str | None:
        return normalize_aadhar(v)


class StudentStatusUpdate(BaseModel):
    """Admin status change (leave, complete)."""

    status: StudentStatus
    comment: str | None = Field(None, max_length=500)


class StudentResponse(BaseModel):
    """Schema for student response."""

    id: int
    enrollment_number: str
    name: str
    father_name: str
    date_of_birth: date | None
    mobile: str
    aadhar: str | None
    photo_url: str | None
    enrollment_date: date
    course_id: int | None
    course_duration_value: int
    course_duration_unit: str
    duration_months: int
    selected_payment_plan_name: str | None
    overridden_enrollment_fee: Decimal | None
    overridden_monthly_fee: Decimal | None
    status: str
    is_archived: bool
    notes: str | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
