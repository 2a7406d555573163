"""
Core application utilities for settings, logging, security and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- Token and password helpers
- Dependency helpers (tenant extraction, tenant-scoped DB session, current user)
"""
