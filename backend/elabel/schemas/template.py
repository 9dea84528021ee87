"""
eLabel API — Label Template Response Schemas

Templates are read-only through the API, so only response models exist.
"""

import uuid
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from elabel.models.label_template import LabelTemplate
from elabel.schemas.base import CamelModel

FieldType = Literal["String", "Text", "List", "Date"]


class FieldDefinition(CamelModel):
    """One field a label of this template carries."""

    name: str
    type: FieldType
    label: str = Field(description="Display label")
    translatable: bool = False
    required: bool = False


class TemplateResponse(CamelModel):
    id: uuid.UUID
    template_name: str
    description: Optional[str] = None
    version: int
    required_fields: List[FieldDefinition] = Field(default_factory=list)
    custom_fields: List[FieldDefinition] = Field(default_factory=list)
    created_at: datetime

    @classmethod
    def from_model(cls, template: LabelTemplate) -> "TemplateResponse":
        return cls(
            id=template.id,
            template_name=template.template_name,
            description=template.description,
            version=template.version,
            required_fields=[FieldDefinition.model_validate(f) for f in template.required_fields or []],
            custom_fields=[FieldDefinition.model_validate(f) for f in template.custom_fields or []],
            created_at=template.created_at,
        )
