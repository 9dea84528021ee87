"""
eLabel API — Label Request/Response Schemas
============================================

What:  The API contract for creating and returning labels.
Why:   All payload validation for POST /api/labels happens here, before the
       service runs: required fields, length bounds, formats, the accepted
       expiry-date formats and the "not in the past" rule.

Accepted expiryDate formats (naive values are read as UTC):
    2030-06-30
    2030-06-30T12:00:00
    2030-06-30T12:00:00.250
    2030-06-30T12:00:00Z / +02:00
    2030-06-30T12:00:00.250Z / +02:00
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, StringConstraints, field_validator

from elabel.models.label import Label
from elabel.schemas.base import CamelModel
from elabel.validation import (
    BATCH_NUMBER_PATTERN,
    CODE_PATTERN,
    KIT_NUMBER_PATTERN,
    LANGUAGE_CODE_PATTERN,
    SPONSOR_NAME_PATTERN,
)

EXPIRY_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
)
INVALID_DATE_MESSAGE = "Invalid date format - use YYYY-MM-DD"

LanguageCode = Annotated[str, StringConstraints(pattern=LANGUAGE_CODE_PATTERN)]


def parse_expiry_date(value: str) -> datetime:
    """Parses one of EXPIRY_DATE_FORMATS; raises ValueError otherwise."""
    text = value.strip()
    for fmt in EXPIRY_DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ValueError(INVALID_DATE_MESSAGE)


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class LabelMetadataIn(CamelModel):
    created_by: str = Field(min_length=1, max_length=100, description="Who created the label")


class LabelCreate(CamelModel):
    """
    Body of POST /api/labels.

    `customFields` is free-form: its keys come from the label template and
    values may be strings, lists or per-language maps.
    """

    label_type: str = Field(min_length=1, max_length=100)
    template_version: int = Field(ge=1)
    trial_identifier: str = Field(min_length=1, max_length=50, pattern=CODE_PATTERN)
    sponsor_name: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=SPONSOR_NAME_PATTERN)
    protocol_number: str = Field(min_length=1, max_length=50, pattern=CODE_PATTERN)
    product_name: str = Field(min_length=1, max_length=200)
    identifier_code: str = Field(min_length=1, max_length=50, pattern=CODE_PATTERN)
    batch_number: str = Field(min_length=3, max_length=20, pattern=BATCH_NUMBER_PATTERN)
    expiry_date: datetime
    kit_number: Optional[str] = Field(default=None, pattern=KIT_NUMBER_PATTERN)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    languages: List[LanguageCode] = Field(
        default_factory=lambda: ["en"], min_length=1, max_length=20
    )
    metadata: LabelMetadataIn

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry(cls, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return parse_expiry_date(value)
        raise ValueError(INVALID_DATE_MESSAGE)

    @field_validator("expiry_date")
    @classmethod
    def expiry_not_in_past(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        if value < datetime.now(timezone.utc):
            raise ValueError("Expiry date cannot be in the past")
        return value


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class LabelMetadataOut(CamelModel):
    created_by: str
    created_at: datetime


class LabelResponse(CamelModel):
    """Full representation of a stored label."""

    id: uuid.UUID
    label_type: str
    template_version: int
    trial_identifier: str
    sponsor_name: Optional[str] = None
    protocol_number: str
    product_name: str
    identifier_code: str
    batch_number: str
    expiry_date: datetime
    kit_number: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    languages: List[str] = Field(default_factory=list)
    metadata: LabelMetadataOut

    @classmethod
    def from_model(cls, label: Label) -> "LabelResponse":
        return cls(
            id=label.id,
            label_type=label.label_type,
            template_version=label.template_version,
            trial_identifier=label.trial_identifier,
            sponsor_name=label.sponsor_name,
            protocol_number=label.protocol_number,
            product_name=label.product_name,
            identifier_code=label.identifier_code,
            batch_number=label.batch_number,
            expiry_date=label.expiry_date,
            kit_number=label.kit_number,
            custom_fields=label.custom_fields or {},
            languages=label.languages or [],
            metadata=LabelMetadataOut(
                created_by=label.created_by,
                created_at=label.created_at,
            ),
        )
