"""Database Infrastructure — SQLAlchemy declarative Base shared by models and migrations.

Invariants:
    - All models and the Alembic env import metadata from db/base.py

Design Decisions:
    - asyncpg driver for PostgreSQL in production, aiosqlite in tests
"""
