from src.core.documents.number_generator import (
    EnrollmentNumberGenerator,
    format_enrollment_number,
    get_enrollment_number,
    next_enrollment_number,
)

__all__ = [
    "EnrollmentNumberGenerator",
    "format_enrollment_number",
    "get_enrollment_number",
    "next_enrollment_number",
]
