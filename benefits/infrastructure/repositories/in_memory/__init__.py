"""In-memory adapter del store de beneficios (tests / desarrollo local)."""

from .store import InMemoryBenefitsStore, InMemoryBenefitsUnitOfWork

__all__ = [
    "InMemoryBenefitsStore",
    "InMemoryBenefitsUnitOfWork",
]
