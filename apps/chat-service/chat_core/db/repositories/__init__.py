"""
Per-domain repository modules for database access.

Each module exposes plain functions taking a SQLAlchemy ``Session`` first.
"""
