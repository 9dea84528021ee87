"""
eLabel API — Label Route Handlers
==================================

What:  POST /api/labels, GET /api/labels and the six single-label lookups.
How:   Path parameters are format-checked with the same patterns the create
       body uses, so a malformed key is a 400 before any query runs.
       Handlers delegate to LabelService and return its response models.
Who:   Called by the label designer and the kit-scanning front end.

Route order matters:
    /protocol/{protocolNumber}/kit/{kitNumber} is registered before the
    /{sponsorName}/{trialIdentifier}/... routes, otherwise a sponsor named
    "protocol" would capture it.
"""

import logging
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from elabel.database import get_db_session
from elabel.schemas.common import ErrorResponse, ValidationErrorResponse
from elabel.schemas.label import LabelCreate, LabelResponse
from elabel.services.label_service import label_service
from elabel.validation import (
    BATCH_NUMBER_PATTERN,
    CODE_PATTERN,
    KIT_NUMBER_PATTERN,
    SPONSOR_NAME_PATTERN,
    UUID_PATTERN,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/labels", tags=["Labels"])

_LOOKUP_RESPONSES = {
    400: {"description": "Malformed path parameter", "model": ValidationErrorResponse},
    404: {"description": "No label matches", "model": ErrorResponse},
}

# ── Path parameters ───────────────────────────────────────────────────────
# Declared once so every route validates a key identically. The alias is
# the name in the URL template and in validation errors.
SponsorName = Annotated[
    str, Path(min_length=1, max_length=100, pattern=SPONSOR_NAME_PATTERN, alias="sponsorName")
]
TrialIdentifier = Annotated[
    str, Path(min_length=1, max_length=50, pattern=CODE_PATTERN, alias="trialIdentifier")
]
ProtocolNumber = Annotated[
    str, Path(min_length=1, max_length=50, pattern=CODE_PATTERN, alias="protocolNumber")
]
IdentifierCode = Annotated[
    str, Path(min_length=1, max_length=50, pattern=CODE_PATTERN, alias="identifierCode")
]
BatchNumber = Annotated[
    str, Path(min_length=3, max_length=20, pattern=BATCH_NUMBER_PATTERN, alias="batchNumber")
]
KitNumber = Annotated[str, Path(pattern=KIT_NUMBER_PATTERN, alias="kitNumber")]
LabelId = Annotated[str, Path(pattern=UUID_PATTERN, alias="id")]


@router.post(
    "",
    status_code=201,
    response_model=LabelResponse,
    responses={
        400: {"description": "Invalid label", "model": ValidationErrorResponse},
        409: {"description": "identifierCode already used", "model": ErrorResponse},
    },
    summary="Create a label",
)
async def create_label(
    payload: LabelCreate,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.create_label(db, payload)


@router.get(
    "",
    response_model=List[LabelResponse],
    summary="List labels, newest first",
)
async def list_labels(
    label_type: Optional[str] = Query(default=None, max_length=100, alias="labelType"),
    template_version: Optional[int] = Query(default=None, ge=1, alias="templateVersion"),
    db: AsyncSession = Depends(get_db_session),
) -> List[LabelResponse]:
    return await label_service.list_labels(
        db, label_type=label_type, template_version=template_version
    )


@router.get(
    "/identifier/{identifierCode}",
    response_model=LabelResponse,
    responses=_LOOKUP_RESPONSES,
    summary="Get a label by its identifier code",
)
async def get_label_by_identifier_code(
    identifier_code: IdentifierCode,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.get_by_identifier_code(db, identifier_code)


@router.get(
    "/batch/{batchNumber}",
    response_model=LabelResponse,
    responses=_LOOKUP_RESPONSES,
    summary="Get the first label of a batch",
)
async def get_label_by_batch_number(
    batch_number: BatchNumber,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.get_by_batch_number(db, batch_number)


@router.get(
    "/protocol/{protocolNumber}/kit/{kitNumber}",
    response_model=LabelResponse,
    responses=_LOOKUP_RESPONSES,
    summary="Get a label by protocol number and kit number",
)
async def get_label_by_protocol_and_kit(
    protocol_number: ProtocolNumber,
    kit_number: KitNumber,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.get_by_protocol_and_kit(db, protocol_number, kit_number)


@router.get(
    "/{sponsorName}/{trialIdentifier}/batch/{batchNumber}",
    response_model=LabelResponse,
    responses=_LOOKUP_RESPONSES,
    summary="Get a label by sponsor, trial and batch number",
)
async def get_label_by_sponsor_trial_batch(
    sponsor_name: SponsorName,
    trial_identifier: TrialIdentifier,
    batch_number: BatchNumber,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.get_by_sponsor_trial_batch(
        db, sponsor_name, trial_identifier, batch_number
    )


@router.get(
    "/{sponsorName}/{trialIdentifier}/kit/{kitNumber}",
    response_model=LabelResponse,
    responses=_LOOKUP_RESPONSES,
    summary="Get a label by sponsor, trial and kit number",
)
async def get_label_by_sponsor_trial_kit(
    sponsor_name: SponsorName,
    trial_identifier: TrialIdentifier,
    kit_number: KitNumber,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.get_by_sponsor_trial_kit(
        db, sponsor_name, trial_identifier, kit_number
    )


@router.get(
    "/{id}",
    response_model=LabelResponse,
    responses=_LOOKUP_RESPONSES,
    summary="Get a label by id",
)
async def get_label_by_id(
    label_id: LabelId,
    db: AsyncSession = Depends(get_db_session),
) -> LabelResponse:
    return await label_service.get_by_id(db, UUID(label_id))
