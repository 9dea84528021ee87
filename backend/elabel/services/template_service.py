"""
eLabel API — Label Template Service

Read-only access to the label templates stored in the database. Templates are
ordered by name, then version, so every version of a template sits together.
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from elabel.exceptions import DatabaseError, NotFoundError
from elabel.models.label_template import LabelTemplate
from elabel.schemas.template import TemplateResponse

logger = logging.getLogger(__name__)


class TemplateService:

    async def list_templates(self, db: AsyncSession) -> List[TemplateResponse]:
        query = select(LabelTemplate).order_by(
            LabelTemplate.template_name.asc(),
            LabelTemplate.version.asc(),
        )
        try:
            result = await db.execute(query)
            templates = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing templates: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not retrieve templates. Please try again.",
                context={"error_type": type(e).__name__},
            ) from e
        return [TemplateResponse.from_model(t) for t in templates]

    async def get_template(self, db: AsyncSession, template_id: UUID) -> TemplateResponse:
        """
        Raises:
            NotFoundError: no template with that id (→ 404 "Template not found")
            DatabaseError: query execution failed (→ 500)
        """
        try:
            result = await db.execute(
                select(LabelTemplate).where(LabelTemplate.id == template_id)
            )
            template = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error fetching template %s: %s", template_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the template. Please try again.",
                context={"template_id": str(template_id)},
            ) from e

        if template is None:
            raise NotFoundError(message="Template not found")
        return TemplateResponse.from_model(template)


template_service = TemplateService()
