"""
NoteTree Backend — Application Package
======================================

What: Hierarchical notes service. Each project owns a forest of notes that is
      edited in memory and written through to the database.
Who:  Imported by uvicorn (notetree.main:app), Alembic, and the test suite.

Layering:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   NoteService / ProjectService      │  ← per-project locking, persistence
    ├─────────────────────────────────────┤
    │  NoteTreeStore + tree_ops (core)    │  ← pure, synchronous tree mutations
    ├─────────────────────────────────────┤
    │   Models & Schemas (Data)           │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (Persistence)            │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

The core layer has no I/O and can be used without the web stack.
"""

__version__ = "1.0.0"
