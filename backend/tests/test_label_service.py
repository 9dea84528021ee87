"""
eLabel API — Label Service Unit Tests
======================================

What:  LabelService creation, listing and lookups.
How:   Not-found and error-translation paths use the mock session; ordering
       and uniqueness use the in-memory SQLite store.

What we test:
    ✅ Each lookup shape raises NotFoundError naming its key
    ✅ SQLAlchemy failures become DatabaseError
    ✅ Duplicate identifierCode raises ConflictError
    ✅ Non-unique keys resolve to the earliest-created label
    ✅ Listing is newest first and honours both filters
"""

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from elabel.exceptions import ConflictError, DatabaseError, NotFoundError
from elabel.models.label import Label
from elabel.schemas.label import LabelCreate
from elabel.services.label_service import LabelService


class TestLabelServiceLookupsNotFound:
    """Every lookup shape reports which key missed."""

    def setup_method(self):
        self.service = LabelService()

    def _no_rows(self, mock_db_session):
        mock_result = MagicMock()
        mock_result.scalars.return_value.first.return_value = None
        mock_db_session.execute.return_value = mock_result

    @pytest.mark.asyncio
    async def test_by_id(self, mock_db_session):
        self._no_rows(mock_db_session)
        with pytest.raises(NotFoundError, match="^Label not found for that id$"):
            await self.service.get_by_id(mock_db_session, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_by_identifier_code(self, mock_db_session):
        self._no_rows(mock_db_session)
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_by_identifier_code(mock_db_session, "ABC123")
        assert exc_info.value.message == "Label not found for that identifierCode"

    @pytest.mark.asyncio
    async def test_by_batch_number(self, mock_db_session):
        self._no_rows(mock_db_session)
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_by_batch_number(mock_db_session, "BATCH-404")
        assert exc_info.value.message == "Label not found for that batchNumber"

    @pytest.mark.asyncio
    async def test_by_protocol_and_kit(self, mock_db_session):
        self._no_rows(mock_db_session)
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_by_protocol_and_kit(mock_db_session, "PROTO-9", "000001")
        assert exc_info.value.message == "Label not found for that protocolNumber and kitNumber"

    @pytest.mark.asyncio
    async def test_by_sponsor_trial_batch(self, mock_db_session):
        self._no_rows(mock_db_session)
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_by_sponsor_trial_batch(mock_db_session, "Acme", "T-1", "B-1")
        assert exc_info.value.message == "Label not found for that sponsorName/trialIdentifier/batchNumber"

    @pytest.mark.asyncio
    async def test_by_sponsor_trial_kit(self, mock_db_session):
        self._no_rows(mock_db_session)
        with pytest.raises(NotFoundError) as exc_info:
            await self.service.get_by_sponsor_trial_kit(mock_db_session, "Acme", "T-1", "000001")
        assert exc_info.value.message == "Label not found for that sponsorName/trialIdentifier/kitNumber"


class TestLabelServiceErrors:

    def setup_method(self):
        self.service = LabelService()

    @pytest.mark.asyncio
    async def test_lookup_query_failure_wrapped(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        with pytest.raises(DatabaseError) as exc_info:
            await self.service.get_by_batch_number(mock_db_session, "BATCH-001")
        assert exc_info.value.context["error_type"] == "OperationalError"

    @pytest.mark.asyncio
    async def test_list_failure_wrapped(self, mock_db_session):
        mock_db_session.execute.side_effect = SQLAlchemyError("boom")
        with pytest.raises(DatabaseError):
            await self.service.list_labels(mock_db_session)

    @pytest.mark.asyncio
    async def test_duplicate_found_by_precheck(self, mock_db_session, make_label_payload):
        mock_result = MagicMock()
        mock_result.scalars.return_value.first.return_value = uuid.uuid4()
        mock_db_session.execute.return_value = mock_result
        payload = LabelCreate.model_validate(make_label_payload())

        with pytest.raises(ConflictError) as exc_info:
            await self.service.create_label(mock_db_session, payload)

        assert exc_info.value.field == "identifierCode"
        mock_db_session.add.assert_not_called()


class TestLabelServiceStore:
    """Behaviour against a real (in-memory) store."""

    def setup_method(self):
        self.service = LabelService()

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_metadata(self, db_session, make_label_payload):
        payload = LabelCreate.model_validate(make_label_payload())

        result = await self.service.create_label(db_session, payload)

        assert result.id is not None
        assert result.identifier_code == "ABC123"
        assert result.metadata.created_by == "qa.user"
        assert result.metadata.created_at is not None
        assert result.custom_fields["dosage"]["fr"] == "Prendre un comprimé par jour"

    @pytest.mark.asyncio
    async def test_create_duplicate_identifier_code(self, db_session, make_label_payload):
        await self.service.create_label(db_session, LabelCreate.model_validate(make_label_payload()))

        with pytest.raises(ConflictError):
            await self.service.create_label(
                db_session,
                LabelCreate.model_validate(make_label_payload(batchNumber="BATCH-002")),
            )

        count = await db_session.scalar(select(func.count()).select_from(Label))
        assert count == 1

    @pytest.mark.asyncio
    async def test_lookup_returns_earliest_created(self, db_session, make_label):
        db_session.add_all([
            make_label("LATER", minutes=10),
            make_label("FIRST", minutes=0),
            make_label("MIDDLE", minutes=5),
        ])
        await db_session.flush()

        by_batch = await self.service.get_by_batch_number(db_session, "BATCH-001")
        by_kit = await self.service.get_by_sponsor_trial_kit(
            db_session, "Acme Pharma", "TRIAL-001", "123456"
        )

        assert by_batch.identifier_code == "FIRST"
        assert by_kit.identifier_code == "FIRST"

    @pytest.mark.asyncio
    async def test_lookups_are_case_sensitive(self, db_session, make_label):
        db_session.add(make_label("CASE1"))
        await db_session.flush()

        with pytest.raises(NotFoundError):
            await self.service.get_by_sponsor_trial_batch(
                db_session, "acme pharma", "TRIAL-001", "BATCH-001"
            )

    @pytest.mark.asyncio
    async def test_protocol_and_kit_lookup(self, db_session, make_label):
        db_session.add_all([
            make_label("KIT-A", kit_number="000001"),
            make_label("KIT-B", kit_number="000002", protocol_number="PROTO-999"),
        ])
        await db_session.flush()

        result = await self.service.get_by_protocol_and_kit(db_session, "PROTO-999", "000002")

        assert result.identifier_code == "KIT-B"

    @pytest.mark.asyncio
    async def test_list_newest_first_with_filters(self, db_session, make_label):
        db_session.add_all([
            make_label("OLD", minutes=0),
            make_label("NEW", minutes=20),
            make_label("V2", minutes=10, template_version=2),
            make_label("OTHER", minutes=30, label_type="Carton Label"),
        ])
        await db_session.flush()

        everything = await self.service.list_labels(db_session)
        assert [l.identifier_code for l in everything] == ["OTHER", "NEW", "V2", "OLD"]

        kit_v1 = await self.service.list_labels(
            db_session, label_type="Primary Kit Label", template_version=1
        )
        assert [l.identifier_code for l in kit_v1] == ["NEW", "OLD"]
