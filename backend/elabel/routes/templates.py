"""
eLabel API — Label Template Route Handlers

GET /api/templates and GET /api/templates/{id}. Templates tell the label
designer which fields a label type carries; they are read-only here.
"""

from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from elabel.database import get_db_session
from elabel.schemas.common import ErrorResponse, ValidationErrorResponse
from elabel.schemas.template import TemplateResponse
from elabel.services.template_service import template_service
from elabel.validation import UUID_PATTERN

router = APIRouter(prefix="/api/templates", tags=["Templates"])

TemplateId = Annotated[str, Path(pattern=UUID_PATTERN, alias="id")]


@router.get(
    "",
    response_model=List[TemplateResponse],
    summary="List label templates",
)
async def list_templates(
    db: AsyncSession = Depends(get_db_session),
) -> List[TemplateResponse]:
    return await template_service.list_templates(db)


@router.get(
    "/{id}",
    response_model=TemplateResponse,
    responses={
        400: {"description": "Malformed id", "model": ValidationErrorResponse},
        404: {"description": "Template not found", "model": ErrorResponse},
    },
    summary="Get a label template",
)
async def get_template(
    template_id: TemplateId,
    db: AsyncSession = Depends(get_db_session),
) -> TemplateResponse:
    return await template_service.get_template(db, UUID(template_id))
