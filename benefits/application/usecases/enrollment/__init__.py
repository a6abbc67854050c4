"""Enrollment use cases: draft, submit y listado."""

from .create_enrollment_draft import (
    CreateEnrollmentDraftInput,
    CreateEnrollmentDraftUseCase,
)
from .list_employee_enrollments import (
    ListEmployeeEnrollmentsInput,
    ListEmployeeEnrollmentsUseCase,
)
from .submit_enrollment import SubmitEnrollmentInput, SubmitEnrollmentUseCase

__all__ = [
    "CreateEnrollmentDraftInput",
    "CreateEnrollmentDraftUseCase",
    "SubmitEnrollmentInput",
    "SubmitEnrollmentUseCase",
    "ListEmployeeEnrollmentsInput",
    "ListEmployeeEnrollmentsUseCase",
]
