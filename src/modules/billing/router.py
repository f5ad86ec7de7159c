"""API endpoints for Billing module."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.billing.schemas import (
    BillingCategory,
    BillingSummary,
    ClearPaymentHistoriesResult,
    CustomFeeCreate,
    CustomFeeStatusUpdate,
    LedgerResponse,
    PaymentCreate,
    StudentDuesRow,
)
from src.modules.billing.service import BillingService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/billing", tags=["Billing"])


# --- Dues ---


@router.get(
    "/students/{student_id}/summary",
    response_model=ApiResponse[BillingSummary],
)
async def get_billing_summary(
    student_id: int,
    as_of: date | None = Query(None, description="Compute dues as of this date (default: today)"),
    db: AsyncSession = Depends(get_db),
):
    """Billed, paid and due amounts of a student with the per-item breakdown."""
    service = BillingService(db)
    summary = await service.get_summary(student_id, as_of)
    return ApiResponse(data=summary)


@router.get(
    "/overview",
    response_model=ApiResponse[list[StudentDuesRow]],
)
async def get_billing_overview(
    category: BillingCategory = Query(BillingCategory.DUES),
    as_of: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Students of one billing tab: enrollment_pending, dues or cleared."""
    service = BillingService(db)
    rows = await service.list_billing_overview(category, as_of)
    return ApiResponse(data=rows)


# --- Payments ---


@router.post(
    "/students/{student_id}/payments",
    response_model=ApiResponse[LedgerResponse],
    status_code=status.HTTP_201_CREATED,
)
async def apply_payment(
    student_id: int,
    data: PaymentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Record a payment against a student."""
    service = BillingService(db)
    ledger = await service.apply_payment(student_id, data)
    return ApiResponse(data=ledger, message="Payment recorded successfully")


@router.delete(
    "/students/{student_id}/payments/{payment_id}",
    response_model=ApiResponse[LedgerResponse],
)
async def revert_payment(
    student_id: int,
    payment_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Remove an erroneous payment record."""
    service = BillingService(db)
    ledger = await service.revert_payment(student_id, payment_id)
    return ApiResponse(data=ledger, message="Payment reverted successfully")


# --- Custom fees ---


@router.post(
    "/students/{student_id}/custom-fees",
    response_model=ApiResponse[LedgerResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_custom_fee(
    student_id: int,
    data: CustomFeeCreate,
    db: AsyncSession = Depends(get_db),
):
    """Charge a custom fee, optionally already paid."""
    service = BillingService(db)
    ledger = await service.add_custom_fee(student_id, data)
    return ApiResponse(data=ledger, message="Custom fee added successfully")


@router.patch(
    "/students/{student_id}/custom-fees/{fee_id}",
    response_model=ApiResponse[LedgerResponse],
)
async def update_custom_fee_status(
    student_id: int,
    fee_id: int,
    data: CustomFeeStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    service = BillingService(db)
    ledger = await service.update_custom_fee_status(student_id, fee_id, data)
    return ApiResponse(data=ledger, message="Custom fee updated successfully")


@router.delete(
    "/students/{student_id}/custom-fees/{fee_id}",
    response_model=ApiResponse[LedgerResponse],
)
async def delete_custom_fee(
    student_id: int,
    fee_id: int,
    db: AsyncSession = Depends(get_db),
):
    service = BillingService(db)
    ledger = await service.delete_custom_fee(student_id, fee_id)
    return ApiResponse(data=ledger, message="Custom fee deleted successfully")


# --- Admin ---


@router.post(
    "/clear-payment-histories",
    response_model=ApiResponse[ClearPaymentHistoriesResult],
)
async def clear_payment_histories(
    dry_run: bool = Query(False, description="Only report what would be cleared"),
    db: AsyncSession = Depends(get_db),
):
    """Delete all payments and reset every student to enrollment_pending."""
    service = BillingService(db)
    result = await service.clear_all_payment_histories(dry_run=dry_run)
    message = "Dry run: nothing was changed" if dry_run else "Payment histories cleared"
    return ApiResponse(data=result, message=message)
