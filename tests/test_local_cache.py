"""Tests for the SQLite local cache."""

import pytest

from opsdash.models.entities import Budget, EntityKind, PaymentHistory
from opsdash.services.storage import PendingOperation, SQLiteLocalCache
from tests.fakes import make_customer


class TestLocalCacheTables:
    """Upsert, read, delete and replace per entity kind."""

    @pytest.mark.asyncio
    async def test_upsert_then_read(self, local_cache):
        customers = [make_customer("Acme"), make_customer("Globex")]
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, customers)
        assert await local_cache.read_all(EntityKind.CUSTOMERS) == customers

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, local_cache):
        customers = [make_customer("Acme")]
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, customers)
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, customers)
        assert await local_cache.read_all(EntityKind.CUSTOMERS) == customers

    @pytest.mark.asyncio
    async def test_upsert_updates_by_id(self, local_cache):
        customer = make_customer("Acme")
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, [customer])
        renamed = customer.model_copy(update={"company_name": "Acme Corp"})
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, [renamed])

        stored = await local_cache.read_all(EntityKind.CUSTOMERS)
        assert [c.company_name for c in stored] == ["Acme Corp"]

    @pytest.mark.asyncio
    async def test_collection_order_preserved(self, local_cache):
        """Test that newest-first payment history reads back newest first."""
        older = PaymentHistory(customer_id="c", amount=10, date="2026-01-01")
        newer = PaymentHistory(customer_id="c", amount=20, date="2026-02-01")
        await local_cache.bulk_upsert(EntityKind.PAYMENT_HISTORY, [older])
        await local_cache.bulk_upsert(EntityKind.PAYMENT_HISTORY, [newer, older])

        stored = await local_cache.read_all(EntityKind.PAYMENT_HISTORY)
        assert [p.id for p in stored] == [newer.id, older.id]

    @pytest.mark.asyncio
    async def test_delete(self, local_cache):
        customer = make_customer("Acme")
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, [customer])
        assert await local_cache.delete(EntityKind.CUSTOMERS, customer.id) is True
        assert await local_cache.delete(EntityKind.CUSTOMERS, customer.id) is False
        assert await local_cache.read_all(EntityKind.CUSTOMERS) == []

    @pytest.mark.asyncio
    async def test_replace_all(self, local_cache):
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, [make_customer("Old")])
        fresh = [make_customer("New")]
        await local_cache.replace_all(EntityKind.CUSTOMERS, fresh)
        assert await local_cache.read_all(EntityKind.CUSTOMERS) == fresh

    @pytest.mark.asyncio
    async def test_kinds_are_separate_tables(self, local_cache):
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, [make_customer("Acme")])
        assert await local_cache.read_all(EntityKind.PROJECTS) == []

    @pytest.mark.asyncio
    async def test_malformed_document_skipped(self, local_cache):
        budget = Budget(category="Hosting", month="2026-10", monthly_target=50)
        await local_cache.bulk_upsert(EntityKind.BUDGETS, [budget])
        with local_cache.connect() as conn:
            conn.execute(
                'INSERT INTO "budgets" (id, position, data) VALUES (?, ?, ?)',
                ("broken", 1, '{"id": "broken", "month": "never"}'),
            )
        assert await local_cache.read_all(EntityKind.BUDGETS) == [budget]

    @pytest.mark.asyncio
    async def test_export_all(self, local_cache):
        await local_cache.bulk_upsert(EntityKind.PAYMENT_HISTORY, [PaymentHistory(amount=5)])
        dump = await local_cache.export_all()
        assert set(dump) == {kind.local_table for kind in EntityKind}
        assert dump["paymentHistory"][0]["amount"] == 5

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        """Test that the cache file persists across instances."""
        path = str(tmp_path / "cache.sqlite3")
        first = SQLiteLocalCache(path)
        customer = make_customer("Acme")
        await first.bulk_upsert(EntityKind.CUSTOMERS, [customer])
        first.close()

        second = SQLiteLocalCache(path)
        try:
            assert await second.read_all(EntityKind.CUSTOMERS) == [customer]
        finally:
            second.close()


class TestPendingOutbox:
    """Tests for the pending remote write markers."""

    @pytest.mark.asyncio
    async def test_mark_and_list(self, local_cache):
        await local_cache.mark_pending(EntityKind.CUSTOMERS, ["a", "b"], PendingOperation.UPSERT)
        pending = await local_cache.list_pending()
        assert {(p.kind, p.entity_id, p.operation) for p in pending} == {
            (EntityKind.CUSTOMERS, "a", PendingOperation.UPSERT),
            (EntityKind.CUSTOMERS, "b", PendingOperation.UPSERT),
        }

    @pytest.mark.asyncio
    async def test_later_mark_replaces_earlier(self, local_cache):
        await local_cache.mark_pending(EntityKind.NOTES, ["n"], PendingOperation.UPSERT)
        await local_cache.mark_pending(EntityKind.NOTES, ["n"], PendingOperation.DELETE)
        pending = await local_cache.list_pending()
        assert len(pending) == 1
        assert pending[0].operation == PendingOperation.DELETE

    @pytest.mark.asyncio
    async def test_clear_pending(self, local_cache):
        await local_cache.mark_pending(EntityKind.NOTES, ["n", "m"], PendingOperation.UPSERT)
        await local_cache.clear_pending(EntityKind.NOTES, ["n"])
        assert [p.entity_id for p in await local_cache.list_pending()] == ["m"]

    @pytest.mark.asyncio
    async def test_clear_all_includes_outbox(self, local_cache):
        await local_cache.bulk_upsert(EntityKind.CUSTOMERS, [make_customer("Acme")])
        await local_cache.mark_pending(EntityKind.CUSTOMERS, ["x"], PendingOperation.DELETE)
        await local_cache.clear_all()
        assert await local_cache.read_all(EntityKind.CUSTOMERS) == []
        assert await local_cache.list_pending() == []
