"""
EntDoc Test Suite.

This package contains:
- unit/: Unit tests for the entity model, schema and configuration
- integration/: Model round trips through the in-memory connection
"""
