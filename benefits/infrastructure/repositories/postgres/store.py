"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/store.py
============================================================
Class: PostgresBenefitsStore / PostgresBenefitsUnitOfWork

Responsibilities:
  - Abrir una conexión del pool y una transacción por unidad de trabajo.
  - Commit al salir sin error; rollback ante cualquier excepción.
  - Traducir fallas de driver no capturadas a DatabaseError.

Collaborators:
  - infrastructure.db.pool.get_pool (psycopg_pool.ConnectionPool)
  - PostgresIdentityMixin / PostgresBenefitsMixin

Constraints / Notes:
  - Los BenefitsError levantados dentro de la unidad de trabajo se
    propagan tal cual (la transacción ya hizo rollback).
============================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ...db.pool import get_pool
from .benefits import PostgresBenefitsMixin
from .identity import PostgresIdentityMixin


class PostgresBenefitsUnitOfWork(PostgresIdentityMixin, PostgresBenefitsMixin):
    """Unidad de trabajo sobre una conexión con transacción abierta."""


class PostgresBenefitsStore:
    def __init__(self, pool: Optional[ConnectionPool] = None):
        # R: Pool inyectable (tests de integración); por defecto el global.
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        return self._pool if self._pool is not None else get_pool()

    @contextmanager
    def unit_of_work(self) -> Iterator[PostgresBenefitsUnitOfWork]:
        try:
            with self._get_pool().connection() as conn:
                with conn.transaction():
                    yield PostgresBenefitsUnitOfWork(conn)
        except psycopg.Error as exc:
            logger.exception(
                "PostgresBenefitsStore: unit of work failed",
                extra={"error": str(exc)},
            )
            raise DatabaseError("Database transaction failed") from exc
