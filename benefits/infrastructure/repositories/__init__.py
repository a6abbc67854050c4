"""
============================================================
TARJETA CRC
============================================================
Class: benefits.infrastructure.repositories (Package exports)

Responsibilities:
- Exponer las implementaciones concretas del BenefitsStore (Postgres e
  InMemory) en un único punto de importación.

Collaborators:
- Store Postgres (SQL crudo, psycopg)
- Store InMemory (testing / desarrollo local)
============================================================
"""

from .in_memory import InMemoryBenefitsStore
from .postgres import PostgresBenefitsStore

__all__ = [
    "InMemoryBenefitsStore",
    "PostgresBenefitsStore",
]
