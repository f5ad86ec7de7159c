"""Schemas for dashboard API (main page summary)."""

from datetime import date
from decimal import Decimal

from src.shared.schemas.base import BaseSchema


class DashboardResponse(BaseSchema):
    """Summary data for main page cards."""

    # Overview cards
    active_students_count: int = 0  # active + enrollment_pending
    outstanding_dues: Decimal = Decimal("0")
    outstanding_dues_count: int = 0  # students owing anything
    total_revenue: Decimal = Decimal("0")
    new_registrations_this_month: int = 0

    # Context
    as_of: date
    month_label: str
