"""
Firebase Guard Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies, in-memory database)
- integration/: Servicer and HTTP API tests over the in-memory database
"""
