"""
eLabel API — LabelTemplate SQLAlchemy Model
============================================

What:  ORM model for the `label_templates` table.
Why:   A template describes which fields a label of a given type/version
       carries. The API only reads templates; they are provisioned directly
       in the store.

The two field lists are ordered JSON arrays of field definitions:
    {"name": "dosage", "type": "Text", "label": "Dosage",
     "translatable": true, "required": false}
Their shape is validated on the way out by `elabel.schemas.template`.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from elabel.database import Base
from elabel.models.types import JSONDocument


class LabelTemplate(Base):
    """Schema definition for labels of one type and version."""

    __tablename__ = "label_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    required_fields: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list
    )
    custom_fields: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONDocument, nullable=False, default=list
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_label_templates_name_version", "template_name", "version"),
    )

    def __repr__(self) -> str:
        return f"<LabelTemplate(id={self.id}, name='{self.template_name}', version={self.version})>"
