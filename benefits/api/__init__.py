"""Costura HTTP: exception handlers (las dependencias viven en identity.auth_users)."""
