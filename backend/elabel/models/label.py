"""
eLabel API — Label SQLAlchemy Model
====================================

What:  ORM model for the `labels` table: one row per printed trial-kit label.
Why:   Maps label documents to rows for type-safe lookups.
Who:   Used by LabelService for create/list/lookup and by Alembic.

Table Design Rationale:
    - identifier_code is unique: it is the key printed on the label for
      direct lookup, so two labels may never share it
    - custom_fields / languages are JSON documents: their shape is driven
      by the label template, not by the table
    - created_by / created_at hold the creation metadata; the API nests
      them under `metadata` in responses

Indexes:
    uq_labels_identifier_code          → identifier lookup (unique)
    idx_labels_sponsor_trial_batch     → sponsor/trial/batch lookup
    idx_labels_sponsor_trial_kit       → sponsor/trial/kit lookup
    idx_labels_protocol_kit            → protocol/kit lookup
    idx_labels_batch_number            → batch lookup
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from elabel.database import Base
from elabel.models.types import JSONDocument


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Label(Base):
    """
    A printed/physical clinical-trial label instance.

    Query Patterns:
        - WHERE identifier_code = :code             (unique index)
        - WHERE sponsor_name, trial_identifier, batch_number = ...
        - WHERE sponsor_name, trial_identifier, kit_number = ...
        - WHERE protocol_number, kit_number = ...
        - WHERE batch_number = :batch
        - WHERE label_type = :t AND template_version = :v  (list filters)
    """

    __tablename__ = "labels"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ── Template binding ──────────────────────────────────────────────────
    label_type: Mapped[str] = mapped_column(String(100), nullable=False)
    template_version: Mapped[int] = mapped_column(Integer, nullable=False)

    # ── Core fields (not translatable) ────────────────────────────────────
    trial_identifier: Mapped[str] = mapped_column(String(50), nullable=False)
    sponsor_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    protocol_number: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    identifier_code: Mapped[str] = mapped_column(String(50), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(20), nullable=False)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Kit-level tracking, optional
    kit_number: Mapped[Optional[str]] = mapped_column(String(6), nullable=True)

    # ── Template-driven documents ─────────────────────────────────────────
    custom_fields: Mapped[Dict[str, Any]] = mapped_column(
        JSONDocument, nullable=False, default=dict
    )
    # e.g. ["en", "fr", "es"]
    languages: Mapped[List[str]] = mapped_column(
        JSONDocument, nullable=False, default=lambda: ["en"]
    )

    # ── Creation metadata ─────────────────────────────────────────────────
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("identifier_code", name="uq_labels_identifier_code"),
        Index("idx_labels_sponsor_trial_batch", "sponsor_name", "trial_identifier", "batch_number"),
        Index("idx_labels_sponsor_trial_kit", "sponsor_name", "trial_identifier", "kit_number"),
        Index("idx_labels_protocol_kit", "protocol_number", "kit_number"),
        Index("idx_labels_batch_number", "batch_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<Label(id={self.id}, identifier_code='{self.identifier_code}', "
            f"batch_number='{self.batch_number}')>"
        )
