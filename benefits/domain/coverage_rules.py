"""
===============================================================================
TARJETA CRC — domain/coverage_rules.py
===============================================================================

Módulo:
    Reglas de cobertura (tier vs. dependientes) y age-out de hijos

Responsabilidades:
    - Validar una selección de coverage tiers contra el roster de dependientes.
    - Rechazar ids de dependientes duplicados en un mismo request.
    - Calcular edad en años enteros con resta calendario.
    - Rechazar hijos que alcanzan el límite de edad a la fecha efectiva.

Colaboradores:
    - application/usecases/enrollment: draft (cobertura) y submit (cobertura + edad)
    - crosscutting/exceptions: ValidationError (400) / BusinessRuleError (422)

Notas:
    - Funciones puras, sin estado ni I/O.
    - El age-out se evalúa SOLO en submit, contra la fecha efectiva calculada.
===============================================================================
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol, Sequence
from uuid import UUID

from ..crosscutting.exceptions import BusinessRuleError, ValidationError
from .entities import CoverageTier, DependentRelationship

DEFAULT_CHILD_AGE_LIMIT = 26

# R: (spouses requeridos, hijos mínimos, hijos máximos, mensaje de error).
# hijos máximos None = sin tope.
_TIER_RULES: dict[CoverageTier, tuple[int, int, int | None, str]] = {
    CoverageTier.EMPLOYEE_ONLY: (
        0,
        0,
        0,
        "EMPLOYEE_ONLY coverage cannot include dependents",
    ),
    CoverageTier.EMPLOYEE_SPOUSE: (
        1,
        0,
        0,
        "EMPLOYEE_SPOUSE coverage requires exactly one spouse and no children",
    ),
    CoverageTier.EMPLOYEE_CHILDREN: (
        0,
        1,
        None,
        "EMPLOYEE_CHILDREN coverage requires one or more children and no spouse",
    ),
    CoverageTier.FAMILY: (
        1,
        1,
        None,
        "FAMILY coverage requires exactly one spouse and one or more children",
    ),
}


class DependentLike(Protocol):
    """Lo mínimo que las reglas necesitan de un dependiente."""

    @property
    def id(self) -> UUID: ...

    @property
    def relationship(self) -> DependentRelationship | str: ...


class ChildLike(DependentLike, Protocol):
    @property
    def date_of_birth(self) -> date: ...


def parse_coverage_tier(value: CoverageTier | str) -> CoverageTier:
    """Normaliza un tier crudo. Valores desconocidos -> ValidationError."""
    if isinstance(value, CoverageTier):
        return value
    try:
        return CoverageTier(str(value))
    except ValueError:
        raise ValidationError(f"Unsupported coverage tier: {value}") from None


def _relationship_of(dependent: DependentLike) -> DependentRelationship | None:
    try:
        return DependentRelationship(dependent.relationship)
    except ValueError:
        return None


def validate_coverage_selection(
    tiers: Iterable[CoverageTier | str],
    dependents: Sequence[DependentLike],
) -> None:
    """
    Valida que cada tier distinto de la elección sea consistente con el roster.

    Raises:
        ValidationError: tier no soportado.
        BusinessRuleError: cantidad de spouses/hijos incompatible con un tier.
    """
    relationships = [_relationship_of(d) for d in dependents]
    spouse_count = relationships.count(DependentRelationship.SPOUSE)
    child_count = relationships.count(DependentRelationship.CHILD)

    seen: set[CoverageTier] = set()
    for raw_tier in tiers:
        tier = parse_coverage_tier(raw_tier)
        if tier in seen:
            continue
        seen.add(tier)

        spouses, min_children, max_children, message = _TIER_RULES[tier]
        if spouse_count != spouses:
            raise BusinessRuleError(message)
        if child_count < min_children:
            raise BusinessRuleError(message)
        if max_children is not None and child_count > max_children:
            raise BusinessRuleError(message)


def assert_unique_dependent_ids(dependent_ids: Sequence[UUID]) -> None:
    if len(set(dependent_ids)) != len(dependent_ids):
        raise ValidationError(
            "Duplicate dependentIds are not allowed in an enrollment"
        )


def calculate_age_on(birth_date: date, on_date: date) -> int:
    """Edad en años enteros a `on_date` (resta calendario, sin aproximar días)."""
    age = on_date.year - birth_date.year
    if (on_date.month, on_date.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def assert_children_within_age_limit(
    dependents: Iterable[ChildLike],
    effective_date: date,
    *,
    age_limit: int = DEFAULT_CHILD_AGE_LIMIT,
) -> None:
    """Falla si algún CHILD tiene edad >= age_limit a la fecha efectiva."""
    for dependent in dependents:
        if _relationship_of(dependent) != DependentRelationship.CHILD:
            continue
        age = calculate_age_on(dependent.date_of_birth, effective_date)
        if age >= age_limit:
            raise BusinessRuleError(
                f"Dependent {dependent.id} is age {age}; "
                f"child dependents must be under {age_limit}"
            )


__all__ = [
    "DEFAULT_CHILD_AGE_LIMIT",
    "parse_coverage_tier",
    "validate_coverage_selection",
    "assert_unique_dependent_ids",
    "calculate_age_on",
    "assert_children_within_age_limit",
]
