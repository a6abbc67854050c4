"""
===============================================================================
TARJETA CRC — identity/users.py
===============================================================================

Módulo:
    Modelos de Usuario

Responsabilidades:
    - Definir el enum de roles (FULL_ADMIN / COMPANY_ADMIN / EMPLOYEE).
    - Definir el dataclass User usado por auth y por el motor de enrollment.
    - Definir AuthUser: el usuario autenticado con la sesión que lo respalda.

Colaboradores:
    - identity/auth_users.py: emite/valida JWT con estos roles.
    - infrastructure/repositories/*: mapean filas -> User.

Notas:
    - FULL_ADMIN no pertenece a ningún tenant (tenant_id = None).
    - El email se guarda siempre en minúsculas.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class UserRole(str, Enum):
    FULL_ADMIN = "FULL_ADMIN"
    COMPANY_ADMIN = "COMPANY_ADMIN"
    EMPLOYEE = "EMPLOYEE"


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    password_hash: str
    role: UserRole
    tenant_id: UUID | None = None
    is_active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class AuthUser:
    """Usuario autenticado por access token (claims verificados)."""

    user_id: UUID
    email: str
    role: UserRole
    tenant_id: UUID | None
    session_id: UUID | None = None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()
