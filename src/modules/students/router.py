"""API endpoints for Students module."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.modules.students.models import StudentStatus
from src.modules.students.schemas import (
    StudentCreate,
    StudentResponse,
    StudentStatusUpdate,
    StudentUpdate,
)
from src.modules.students.service import StudentService
from src.shared.schemas.base import ApiResponse, PaginatedResponse

router = APIRouter(prefix="/students", tags=["Students"])


@router.post(
    "",
    response_model=ApiResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_student(
    data: StudentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Enroll a new student. An enrollment number is assigned automatically."""
    service = StudentService(db)
    student = await service.create_student(data)
    return ApiResponse(
        data=StudentResponse.model_validate(student),
        message="Student created successfully",
    )


@router.get(
    "",
    response_model=ApiResponse[PaginatedResponse[StudentResponse]],
)
async def list_students(
    status: StudentStatus | None = Query(None, description="Filter by status"),
    course_id: int | None = Query(None, description="Filter by course"),
    archived: bool | None = Query(None, description="true: completed/left only, false: current only"),
    search: str | None = Query(None, description="Search by name, father's name, mobile, number"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List students with optional filters."""
    service = StudentService(db)
    students, total = await service.list_students(
        status=status,
        course_id=course_id,
        archived=archived,
        search=search,
        page=page,
        limit=limit,
    )
    return ApiResponse(
        data=PaginatedResponse.create(
            items=[StudentResponse.model_validate(s) for s in students],
            total=total,
            page=page,
            limit=limit,
        )
    )


@router.get(
    "/{student_id}",
    response_model=ApiResponse[StudentResponse],
)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get student by ID."""
    service = StudentService(db)
    student = await service.get_student_by_id(student_id)
    return ApiResponse(data=StudentResponse.model_validate(student))


@router.patch(
    "/{student_id}",
    response_model=ApiResponse[StudentResponse],
)
async def update_student(
    student_id: int,
    data: StudentUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update a student."""
    service = StudentService(db)
    student = await service.update_student(student_id, data)
    return ApiResponse(
        data=StudentResponse.model_validate(student),
        message="Student updated successfully",
    )


@router.post(
    "/{student_id}/status",
    response_model=ApiResponse[StudentResponse],
)
async def change_student_status(
    student_id: int,
    data: StudentStatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Mark a student as left or completed."""
    service = StudentService(db)
    student = await service.change_status(student_id, data)
    return ApiResponse(
        data=StudentResponse.model_validate(student),
        message=f"Student status changed to {student.status}",
    )
