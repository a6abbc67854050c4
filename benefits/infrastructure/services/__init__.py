"""
Infrastructure Services

Adapters concretos de los puertos de domain.services:
  - SystemClock / FixedClock (Clock)
  - SecretsTokenGenerator / SeededTokenGenerator (TokenGenerator)

Las variantes Fixed/Seeded son test doubles determinísticos.
"""

from .clock import FixedClock, SystemClock
from .tokens import SecretsTokenGenerator, SeededTokenGenerator

__all__ = [
    "SystemClock",
    "FixedClock",
    "SecretsTokenGenerator",
    "SeededTokenGenerator",
]
