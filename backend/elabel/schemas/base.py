"""Shared Pydantic base for camelCase API contracts."""

from pydantic import BaseModel, ConfigDict

from elabel.validation import to_camel


class CamelModel(BaseModel):
    """
    Accepts and emits camelCase keys while keeping snake_case attributes.

    populate_by_name lets services build responses with Python names;
    FastAPI serializes response models by alias.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
