"""API for dashboard summary (main page)."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.dashboard.schemas import DashboardResponse
from src.modules.dashboard.service import DashboardService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get(
    "",
    response_model=ApiResponse[DashboardResponse],
)
async def get_dashboard(
    as_of: date | None = Query(None, description="Reference date. Default: today."),
    db: AsyncSession = Depends(get_db),
):
    """Get dashboard summary for main page: current students, dues, revenue, registrations."""
    service = DashboardService(db)
    data = await service.get_summary(as_of)
    return ApiResponse(data=DashboardResponse(**data))
