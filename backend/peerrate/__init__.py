"""
PeerRate Backend - Application Package
======================================

What: Professional profiles, peer reviews and average-rating aggregation.
Who:  Imported by uvicorn (`peerrate.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Validation, orchestration
    ├──────────────┬──────────────────────┤
    │ Models (ORM) │ Cache / Object Store │  ← SQLAlchemy, Redis, S3
    ├──────────────┴──────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Services never import the web layer. Their collaborators (cache client,
    object storage, social provider client) are passed in at construction,
    so tests swap them for in-memory fakes.
"""

__version__ = "1.0.0"
