"""Infraestructura: adapters concretos (DB, stores, reloj, tokens)."""
