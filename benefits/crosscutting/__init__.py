"""Crosscutting: config, logging, errores y métricas."""
