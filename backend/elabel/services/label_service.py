"""
eLabel API — Label Service (Business Logic)
============================================

What:  Creates labels and answers every label lookup the API exposes.
Why:   Keeps the query logic and its error translation out of the route
       handlers; routes only parse the path and call one method.
How:   Each method receives the request's AsyncSession. Writes are flushed,
       not committed: `get_db_session` commits once the handler returns.
Who:   Called by elabel.routes.labels.

Lookup rules:
    - All lookups are exact, case-sensitive string matches.
    - When several labels match a non-unique key (batch number, protocol +
      kit, sponsor + trial + batch/kit), the earliest created one wins.
    - A miss raises NotFoundError whose message names the key used.

Query plans:
    identifier_code              → uq_labels_identifier_code
    batch_number                 → idx_labels_batch_number
    protocol_number, kit_number  → idx_labels_protocol_kit
    sponsor, trial, batch / kit  → idx_labels_sponsor_trial_batch / _kit
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from elabel.exceptions import ConflictError, DatabaseError, NotFoundError
from elabel.models.label import Label
from elabel.schemas.label import LabelCreate, LabelResponse

logger = logging.getLogger(__name__)

DUPLICATE_IDENTIFIER_MESSAGE = "A label with that identifierCode already exists"


class LabelService:
    """
    Business logic layer for label operations.

    Responsibilities:
        - create_label(): persist a validated label, enforcing unique identifierCode
        - list_labels(): newest-first listing with optional filters
        - get_by_*(): the single-label lookups behind the GET routes

    Error Handling Strategy:
        SQLAlchemy failures are wrapped in DatabaseError (generic 500 message,
        error type kept in context). NotFoundError and ConflictError are raised
        directly and mapped by the global handlers.
    """

    async def create_label(self, db: AsyncSession, payload: LabelCreate) -> LabelResponse:
        """
        Persist a new label.

        Args:
            db: Async database session
            payload: Body already validated by LabelCreate

        Returns:
            LabelResponse including the generated id and metadata.createdAt

        Raises:
            ConflictError: identifierCode is already used (→ 409)
            DatabaseError: insert failed for any other reason (→ 500)
        """
        try:
            existing = await db.execute(
                select(Label.id).where(Label.identifier_code == payload.identifier_code)
            )
            if existing.scalars().first() is not None:
                raise ConflictError(
                    message=DUPLICATE_IDENTIFIER_MESSAGE,
                    field="identifierCode",
                    context={"identifier_code": payload.identifier_code},
                )

            label = Label(
                label_type=payload.label_type,
                template_version=payload.template_version,
                trial_identifier=payload.trial_identifier,
                sponsor_name=payload.sponsor_name,
                protocol_number=payload.protocol_number,
                product_name=payload.product_name,
                identifier_code=payload.identifier_code,
                batch_number=payload.batch_number,
                expiry_date=payload.expiry_date,
                kit_number=payload.kit_number,
                custom_fields=payload.custom_fields,
                languages=list(payload.languages),
                created_by=payload.metadata.created_by,
            )
            db.add(label)
            # Flush assigns the id and created_at, and surfaces a unique
            # violation from a concurrent insert of the same identifierCode
            await db.flush()

        except IntegrityError as e:
            logger.warning("Duplicate identifierCode on insert: %s", payload.identifier_code)
            raise ConflictError(
                message=DUPLICATE_IDENTIFIER_MESSAGE,
                field="identifierCode",
                context={"identifier_code": payload.identifier_code},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Database error creating label: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not create the label. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        logger.info(
            "Label created: %s (identifierCode=%s, createdBy=%s)",
            label.id, label.identifier_code, label.created_by,
        )
        return LabelResponse.from_model(label)

    async def list_labels(
        self,
        db: AsyncSession,
        label_type: Optional[str] = None,
        template_version: Optional[int] = None,
    ) -> List[LabelResponse]:
        """
        List labels, newest first.

        Both filters are optional and combine with AND. No pagination: the
        label collection of a single deployment is small.
        """
        query = select(Label)
        if label_type is not None:
            query = query.where(Label.label_type == label_type)
        if template_version is not None:
            query = query.where(Label.template_version == template_version)
        query = query.order_by(Label.created_at.desc())

        try:
            result = await db.execute(query)
            labels = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing labels: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve labels. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        return [LabelResponse.from_model(label) for label in labels]

    async def get_by_id(self, db: AsyncSession, label_id: UUID) -> LabelResponse:
        return await self._find_one(
            db,
            "Label not found for that id",
            Label.id == label_id,
        )

    async def get_by_identifier_code(self, db: AsyncSession, identifier_code: str) -> LabelResponse:
        return await self._find_one(
            db,
            "Label not found for that identifierCode",
            Label.identifier_code == identifier_code,
        )

    async def get_by_batch_number(self, db: AsyncSession, batch_number: str) -> LabelResponse:
        return await self._find_one(
            db,
            "Label not found for that batchNumber",
            Label.batch_number == batch_number,
        )

    async def get_by_protocol_and_kit(
        self, db: AsyncSession, protocol_number: str, kit_number: str
    ) -> LabelResponse:
        return await self._find_one(
            db,
            "Label not found for that protocolNumber and kitNumber",
            Label.protocol_number == protocol_number,
            Label.kit_number == kit_number,
        )

    async def get_by_sponsor_trial_batch(
        self, db: AsyncSession, sponsor_name: str, trial_identifier: str, batch_number: str
    ) -> LabelResponse:
        return await self._find_one(
            db,
            "Label not found for that sponsorName/trialIdentifier/batchNumber",
            Label.sponsor_name == sponsor_name,
            Label.trial_identifier == trial_identifier,
            Label.batch_number == batch_number,
        )

    async def get_by_sponsor_trial_kit(
        self, db: AsyncSession, sponsor_name: str, trial_identifier: str, kit_number: str
    ) -> LabelResponse:
        return await self._find_one(
            db,
            "Label not found for that sponsorName/trialIdentifier/kitNumber",
            Label.sponsor_name == sponsor_name,
            Label.trial_identifier == trial_identifier,
            Label.kit_number == kit_number,
        )

    async def _find_one(self, db: AsyncSession, not_found_message: str, *criteria) -> LabelResponse:
        """
        Earliest-created label matching every criterion.

        Raises:
            NotFoundError: nothing matched (→ 404)
            DatabaseError: query execution failed (→ 500)
        """
        query = select(Label).where(*criteria).order_by(Label.created_at.asc()).limit(1)
        try:
            result = await db.execute(query)
            label = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Database error looking up label: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve the label. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e

        if label is None:
            raise NotFoundError(message=not_found_message)
        return LabelResponse.from_model(label)


# ── Singleton Instance ────────────────────────────────────────────────────
label_service = LabelService()
