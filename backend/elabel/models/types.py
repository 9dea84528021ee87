"""Column types shared by the models."""

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB

# JSONB on PostgreSQL (indexable, binary storage); plain JSON elsewhere so
# the in-memory SQLite test store can hold the same documents.
JSONDocument = JSON().with_variant(JSONB(), "postgresql")
