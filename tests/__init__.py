"""
Greenlight Test Suite.

This package contains:
- unit/: Unit tests (no database, no network)
- integration/: Integration tests (SQLite stores, HTTP via TestClient)
"""
