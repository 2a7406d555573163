"""
API route modules.

This package contains subrouters for:
- Auth, users, roles and locations
- APPCC controls, warehouse inventory, CMS pages and media
- E-learning, notifications and AI assistance

Routers are included from shieldcuisine_api.api.main (under the /api prefix).
"""
