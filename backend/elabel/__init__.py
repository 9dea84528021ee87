"""
eLabel API — Application Package Initializer
=============================================

What: Marks the `elabel` directory as a Python package.
Why:  Enables module imports like `from elabel.config import settings`.
Who:  Used by uvicorn (`elabel.main:app`), Alembic, and pytest.

Architecture Note:
    The backend keeps a layered shape:

    ┌─────────────────────────────────────┐
    │    Routes (labels, templates, auth) │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (lookup, auth, OAuth)    │  ← Queries, business rules
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Cross-cutting concerns (rate limiting, slow-down, request IDs, access
    logging, security headers, body size limits) live in `elabel.middleware`
    and are installed once in `elabel.main.create_app()`.
"""

__version__ = "1.0.0"
