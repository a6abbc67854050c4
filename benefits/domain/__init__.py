"""Dominio: entidades, reglas de cobertura, fechas efectivas y puertos."""
