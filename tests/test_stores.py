"""
Tests for the subscriber, expression and webhook event stores.
"""
import asyncio
import json

import pytest


class TestJsonFileSubscriberStore:
    @pytest.mark.asyncio
    async def test_add_and_list(self, tmp_path):
        from app.crud.subscriber_store import JsonFileSubscriberStore

        store = JsonFileSubscriberStore(tmp_path / "subscribers.json")
        assert await store.list_subscribers() == []

        await store.add_subscriber("first@example.com")
        await store.add_subscriber("  Second@Example.com ")

        assert await store.list_subscribers() == ["first@example.com", "second@example.com"]
        assert json.loads((tmp_path / "subscribers.json").read_text()) == [
            "first@example.com",
            "second@example.com",
        ]

    @pytest.mark.asyncio
    async def test_duplicate_is_case_insensitive(self, tmp_path):
        from app.core.exceptions import DuplicateSubscriberError
        from app.crud.subscriber_store import JsonFileSubscriberStore

        store = JsonFileSubscriberStore(tmp_path / "subscribers.json")
        await store.add_subscriber("reader@example.com")

        with pytest.raises(DuplicateSubscriberError):
            await store.add_subscriber("READER@example.com")
        assert await store.contains("Reader@Example.com")
        assert len(await store.list_subscribers()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_all_kept(self, tmp_path):
        from app.crud.subscriber_store import JsonFileSubscriberStore

        store = JsonFileSubscriberStore(tmp_path / "nested" / "subscribers.json")
        emails = [f"reader{i}@example.com" for i in range(20)]

        await asyncio.gather(*(store.add_subscriber(email) for email in emails))

        assert sorted(await store.list_subscribers()) == sorted(emails)

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_keep_one(self, tmp_path):
        from app.core.exceptions import DuplicateSubscriberError
        from app.crud.subscriber_store import JsonFileSubscriberStore

        store = JsonFileSubscriberStore(tmp_path / "subscribers.json")
        results = await asyncio.gather(
            *(store.add_subscriber("same@example.com") for _ in range(5)),
            return_exceptions=True,
        )

        assert sum(1 for r in results if isinstance(r, DuplicateSubscriberError)) == 4
        assert await store.list_subscribers() == ["same@example.com"]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, tmp_path):
        from app.core.exceptions import AppError
        from app.crud.subscriber_store import JsonFileSubscriberStore

        path = tmp_path / "subscribers.json"
        path.write_text("{not json")

        with pytest.raises(AppError):
            await JsonFileSubscriberStore(path).list_subscribers()


class TestSubscriberService:
    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, tmp_path):
        from app.core.exceptions import ValidationError
        from app.crud.subscriber_store import JsonFileSubscriberStore
        from app.services.subscriber_service import SubscriberService

        service = SubscriberService(JsonFileSubscriberStore(tmp_path / "s.json"))
        with pytest.raises(ValidationError) as exc_info:
            await service.create_subscriber("not-an-email")
        assert exc_info.value.message == "Invalid email address."

    @pytest.mark.asyncio
    async def test_new_subscriber_notifies_admins(self, tmp_path, notification_service, outbox):
        from app.crud.subscriber_store import JsonFileSubscriberStore
        from app.services.subscriber_service import SubscriberService

        service = SubscriberService(JsonFileSubscriberStore(tmp_path / "s.json"), notification_service)
        await service.create_subscriber("reader@example.com", source="footer")

        assert len(outbox) == 1
        assert "Newsletter" in outbox[0]["subject"]


def _expression_fields(**overrides):
    fields = {
        "home_model_id": "model-a",
        "home_model_name": "Model A",
        "community_details": {"name": "Cree Nation", "province": "QC"},
        "coordinator": {"name": "Mary Smith", "email": "mary@example.com"},
    }
    fields.update(overrides)
    return fields


class TestInMemoryExpressionStore:
    @pytest.mark.asyncio
    async def test_create_get_update_delete(self):
        from app.crud.expression_store import InMemoryExpressionStore
        from app.models.expression_model import ExpressionStatus

        store = InMemoryExpressionStore()
        created = await store.create(_expression_fields())
        assert created.id == 1
        assert created.status == ExpressionStatus.pending

        fetched = await store.get(1)
        assert fetched.community_details.name == "Cree Nation"

        updated = await store.update(1, status="reviewed", admin_notes="Call back Monday")
        assert updated.status == ExpressionStatus.reviewed
        assert updated.admin_notes == "Call back Monday"
        assert updated.updated_at >= created.updated_at

        await store.delete(1)
        assert await store.list() == []

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self):
        from app.core.exceptions import NotFoundError
        from app.crud.expression_store import InMemoryExpressionStore

        store = InMemoryExpressionStore()
        with pytest.raises(NotFoundError):
            await store.get(99)
        with pytest.raises(NotFoundError):
            await store.update(99, status="reviewed")
        with pytest.raises(NotFoundError):
            await store.delete(99)

    @pytest.mark.asyncio
    async def test_ids_are_never_reused(self):
        from app.crud.expression_store import InMemoryExpressionStore

        store = InMemoryExpressionStore()
        first = await store.create(_expression_fields())
        await store.delete(first.id)
        second = await store.create(_expression_fields())

        assert second.id == first.id + 1

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self):
        from app.crud.expression_store import InMemoryExpressionStore

        store = InMemoryExpressionStore()
        created = await store.create(_expression_fields())
        created.admin_notes = "edited locally"

        assert (await store.get(created.id)).admin_notes is None

    @pytest.mark.asyncio
    async def test_notes_untouched_when_only_status_changes(self):
        from app.crud.expression_store import InMemoryExpressionStore

        store = InMemoryExpressionStore()
        created = await store.create(_expression_fields())
        await store.update(created.id, admin_notes="keep me")
        updated = await store.update(created.id, status="approved")

        assert updated.admin_notes == "keep me"


class TestInMemoryEventStore:
    @pytest.mark.asyncio
    async def test_claim_once(self):
        from app.crud.event_store import InMemoryEventStore

        store = InMemoryEventStore(ttl=3600)
        assert await store.claim("evt_1") is True
        assert await store.claim("evt_1") is False
        assert await store.is_processed("evt_1")

    @pytest.mark.asyncio
    async def test_release_allows_reclaim(self):
        from app.crud.event_store import InMemoryEventStore

        store = InMemoryEventStore(ttl=3600)
        await store.claim("evt_1")
        await store.release("evt_1")

        assert await store.claim("evt_1") is True

    @pytest.mark.asyncio
    async def test_concurrent_claims_have_one_winner(self):
        from app.crud.event_store import InMemoryEventStore

        store = InMemoryEventStore(ttl=3600)
        results = await asyncio.gather(*(store.claim("evt_1") for _ in range(10)))

        assert results.count(True) == 1

    @pytest.mark.asyncio
    async def test_claims_expire_after_ttl(self):
        from app.crud.event_store import InMemoryEventStore

        store = InMemoryEventStore(ttl=0)
        assert await store.claim("evt_1") is True

        assert not await store.is_processed("evt_1")
        assert await store.claim("evt_1") is True
