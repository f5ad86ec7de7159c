"""API endpoints for Courses module."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.courses.schemas import CourseCreate, CourseResponse, CourseUpdate
from src.modules.courses.service import CourseService
from src.shared.schemas.base import ApiResponse

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.post(
    "",
    response_model=ApiResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_course(
    data: CourseCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new course."""
    service = CourseService(db)
    course = await service.create_course(data)
    return ApiResponse(
        data=CourseResponse.model_validate(course),
        message="Course created successfully",
    )


@router.get(
    "",
    response_model=ApiResponse[list[CourseResponse]],
)
async def list_courses(
    db: AsyncSession = Depends(get_db),
):
    """List all courses ordered by name."""
    service = CourseService(db)
    courses = await service.list_courses()
    return ApiResponse(data=[CourseResponse.model_validate(c) for c in courses])


@router.get(
    "/{course_id}",
    response_model=ApiResponse[CourseResponse],
)
async def get_course(
    course_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get course by ID."""
    service = CourseService(db)
    course = await service.get_course_by_id(course_id)
    return ApiResponse(data=CourseResponse.model_validate(course))


@router.patch(
    "/{course_id}",
    response_model=ApiResponse[CourseResponse],
)
async def update_course(
    course_id: int,
    data: CourseUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a course. Sending payment_plans or exam_fees replaces the whole list."""
    service = CourseService(db)
    course = await service.update_course(course_id, data)
    return ApiResponse(
        data=CourseResponse.model_validate(course),
        message="Course updated successfully",
    )


@router.delete(
    "/{course_id}",
    response_model=ApiResponse[None],
)
async def delete_course(
    course_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Delete a course."""
    service = CourseService(db)
    await service.delete_course(course_id)
    return ApiResponse(data=None, message="Course deleted successfully")
