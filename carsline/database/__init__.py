"""
Database package initialization.

The package is split into:
- base: declarative base and mixins
- connection: async engine and session management
- models: SQLAlchemy ORM models for orders, catalog and service history

Submodules are imported explicitly where needed to avoid circular imports.
"""

__all__ = []
