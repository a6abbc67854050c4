"""
PostgreSQL adapter del store de beneficios.

SQL crudo con psycopg 3; una transacción por unidad de trabajo.
"""

from .store import PostgresBenefitsStore, PostgresBenefitsUnitOfWork

__all__ = [
    "PostgresBenefitsStore",
    "PostgresBenefitsUnitOfWork",
]
