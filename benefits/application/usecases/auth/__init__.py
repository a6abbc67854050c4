"""Auth use cases: login, refresh, logout, password reset, invites y signup."""

from .invite_codes import CreateInviteCodeInput, CreateInviteCodeUseCase
from .login import LoginInput, LoginUseCase
from .logout import LogoutAllInput, LogoutAllUseCase, LogoutInput, LogoutUseCase
from .password_reset import (
    ConfirmPasswordResetInput,
    ConfirmPasswordResetUseCase,
    PasswordResetRequestResult,
    RequestPasswordResetInput,
    RequestPasswordResetUseCase,
)
from .refresh_session import RefreshSessionInput, RefreshSessionUseCase
from .security_events import ListSecurityEventsInput, ListSecurityEventsUseCase
from .session_issuer import AuthTokens, SessionIssuer
from .signup_with_invite import SignupWithInviteInput, SignupWithInviteUseCase

__all__ = [
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
]
