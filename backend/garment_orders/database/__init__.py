"""
Database package: declarative base, engine/session management and models.

Submodules are imported explicitly where needed to avoid circular imports.
"""

__all__ = []
