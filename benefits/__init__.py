"""
benefits: núcleo multi-tenant de inscripción a beneficios.

Capas: domain (reglas puras) -> application (use cases) -> infrastructure
(stores, reloj, tokens) -> api (dependencias FastAPI y handlers).
"""

__version__ = "0.1.0"
