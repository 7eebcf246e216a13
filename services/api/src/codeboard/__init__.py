"""Codeboard: role-based coding activity dashboard backend."""
