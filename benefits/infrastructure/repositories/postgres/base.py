"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/base.py
============================================================
Class: PostgresUnitOfWorkBase

Responsibilities:
  - Ejecutar SQL parametrizado sobre la conexión de la unidad de trabajo.
  - Traducir violaciones de unicidad a ConflictError y el resto de fallas
    psycopg a DatabaseError, con logging estructurado.

Collaborators:
  - psycopg.Connection (transacción abierta por PostgresBenefitsStore)
  - crosscutting.exceptions / crosscutting.logger

Constraints / Notes:
  - SQL parametrizado siempre (nunca interpolar input de usuario).
  - Nunca commitea: el commit/rollback pertenece al store.
============================================================
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg
from psycopg import errors as pg_errors

from ....crosscutting.exceptions import ConflictError, DatabaseError
from ....crosscutting.logger import logger


class PostgresUnitOfWorkBase:
    def __init__(self, conn: psycopg.Connection):
        self._conn = conn

    def _execute(
        self,
        query: str,
        params: Iterable[object] = (),
        *,
        context_msg: str,
        conflict_msg: Optional[str] = None,
    ) -> psycopg.Cursor:
        try:
            return self._conn.execute(query, tuple(params))
        except pg_errors.UniqueViolation as exc:
            logger.info(
                "postgres.unique_violation",
                extra={
                    "context": context_msg,
                    "constraint": getattr(exc.diag, "constraint_name", None),
                },
            )
            raise ConflictError(conflict_msg or f"{context_msg}: duplicate") from exc
        except psycopg.Error as exc:
            logger.exception(context_msg, extra={"error": str(exc)})
            raise DatabaseError(f"{context_msg}: {exc}") from exc

    def _executemany(
        self, query: str, params_seq: list[tuple], *, context_msg: str
    ) -> None:
        if not params_seq:
            return
        try:
            with self._conn.cursor() as cur:
                cur.executemany(query, params_seq)
        except pg_errors.UniqueViolation as exc:
            raise ConflictError(f"{context_msg}: duplicate") from exc
        except psycopg.Error as exc:
            logger.exception(context_msg, extra={"error": str(exc)})
            raise DatabaseError(f"{context_msg}: {exc}") from exc

    def _fetchone(
        self, query: str, params: Iterable[object] = (), *, context_msg: str
    ) -> tuple | None:
        return self._execute(query, params, context_msg=context_msg).fetchone()

    def _fetchall(
        self, query: str, params: Iterable[object] = (), *, context_msg: str
    ) -> list[tuple]:
        return self._execute(query, params, context_msg=context_msg).fetchall()


def enum_or_db_error(enum_cls, value, *, column: str):
    """R: Casting estricto: un valor fuera del enum es drift de datos."""
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise DatabaseError(f"Invalid {column} in database: {value}") from exc
