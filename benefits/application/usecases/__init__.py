"""
Use Cases Layer (Business Operations)

Structure
---------
usecases/
├── auth/         # login, refresh rotation, logout, password reset, invites
└── enrollment/   # draft, submit, listado

Usage
-----
    from benefits.application.usecases.enrollment import SubmitEnrollmentUseCase
    from benefits.application.usecases import LoginUseCase
"""

from .auth import (
    AuthTokens,
    ConfirmPasswordResetInput,
    ConfirmPasswordResetUseCase,
    CreateInviteCodeInput,
    CreateInviteCodeUseCase,
    ListSecurityEventsInput,
    ListSecurityEventsUseCase,
    LoginInput,
    LoginUseCase,
    LogoutAllInput,
    LogoutAllUseCase,
    LogoutInput,
    LogoutUseCase,
    PasswordResetRequestResult,
    RefreshSessionInput,
    RefreshSessionUseCase,
    RequestPasswordResetInput,
    RequestPasswordResetUseCase,
    SessionIssuer,
    SignupWithInviteInput,
    SignupWithInviteUseCase,
)
from .enrollment import (
    CreateEnrollmentDraftInput,
    CreateEnrollmentDraftUseCase,
    ListEmployeeEnrollmentsInput,
    ListEmployeeEnrollmentsUseCase,
    SubmitEnrollmentInput,
    SubmitEnrollmentUseCase,
)

__all__ = [
    # Auth
    "AuthTokens",
    "SessionIssuer",
    "LoginInput",
    "LoginUseCase",
    "RefreshSessionInput",
    "RefreshSessionUseCase",
    "LogoutInput",
    "LogoutUseCase",
    "LogoutAllInput",
    "LogoutAllUseCase",
    "RequestPasswordResetInput",
    "RequestPasswordResetUseCase",
    "PasswordResetRequestResult",
    "ConfirmPasswordResetInput",
    "ConfirmPasswordResetUseCase",
    "CreateInviteCodeInput",
    "CreateInviteCodeUseCase",
    "SignupWithInviteInput",
    "SignupWithInviteUseCase",
    "ListSecurityEventsInput",
    "ListSecurityEventsUseCase",
    # Enrollment
    "CreateEnrollmentDraftInput",
    "CreateEnrollmentDraftUseCase",
    "SubmitEnrollmentInput",
    "SubmitEnrollmentUseCase",
    "ListEmployeeEnrollmentsInput",
    "ListEmployeeEnrollmentsUseCase",
]
