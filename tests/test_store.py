"""
Tests for the order stores.

Tests: OrderIdSequence, InMemoryOrderStore and SqlOrderStore share the same
contract (create/find/find_all/update/delete/next_id).
"""

import pytest

from app.core.exceptions import PersistenceError
from app.models import OrderStatus
from app.services.lifecycle import build_order
from app.services.store import OrderIdSequence
from tests.conftest import tea_items


class TestOrderIdSequence:
    """Tests for OrderIdSequence.claim()."""

    @pytest.mark.unit
    def test_starts_at_candidate(self):
        assert OrderIdSequence().claim(1) == 1

    @pytest.mark.unit
    def test_never_goes_backwards(self):
        sequence = OrderIdSequence()
        assert sequence.claim(10) == 10
        assert sequence.claim(3) == 11
        assert sequence.last_issued == 11


@pytest.fixture(params=["memory", "sql"])
def store(request, memory_store, sql_store):
    """Run the contract tests against both store implementations."""
    return memory_store if request.param == "memory" else sql_store


async def _create(store, clock, total=20):
    order_id = await store.next_id()
    return await store.create(build_order(order_id, tea_items(), total, now=clock()))


class TestStoreContract:
    """Behaviour every order store must share."""

    @pytest.mark.asyncio
    async def test_create_and_find(self, store, clock):
        created = await _create(store, clock)
        found = await store.find(created.order_id)
        assert found == created
        assert found.items[0].name == "Tea"

    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, store):
        assert await store.find(999) is None

    @pytest.mark.asyncio
    async def test_ids_start_at_one_and_increase(self, store, clock):
        ids = [(await _create(store, clock)).order_id for _ in range(3)]
        assert ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_ids_not_reused_after_deleting_latest(self, store, clock):
        first = await _create(store, clock)
        second = await _create(store, clock)
        assert await store.delete(second.order_id)
        third = await _create(store, clock)
        assert third.order_id > second.order_id > first.order_id

    @pytest.mark.asyncio
    async def test_find_all_newest_first(self, store, clock):
        for _ in range(3):
            await _create(store, clock)
        orders = await store.find_all()
        assert [o.order_id for o in orders] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_find_all_filters_by_status(self, store, clock):
        first = await _create(store, clock)
        await _create(store, clock)
        await store.update(first.order_id, OrderStatus.READY, clock())

        ready = await store.find_all(OrderStatus.READY)
        pending = await store.find_all(OrderStatus.PENDING)
        assert [o.order_id for o in ready] == [first.order_id]
        assert len(pending) == 1

    @pytest.mark.asyncio
    async def test_update_sets_status_and_timestamp(self, store, clock):
        created = await _create(store, clock)
        later = clock()
        updated = await store.update(created.order_id, OrderStatus.ACCEPTED, later)
        assert updated.status == OrderStatus.ACCEPTED
        assert updated.updated_at == later
        assert updated.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, store, clock):
        assert await store.update(42, OrderStatus.READY, clock()) is None

    @pytest.mark.asyncio
    async def test_delete(self, store, clock):
        created = await _create(store, clock)
        assert await store.delete(created.order_id) is True
        assert await store.find(created.order_id) is None
        assert await store.delete(created.order_id) is False

    @pytest.mark.asyncio
    async def test_returned_orders_are_copies(self, store, clock):
        created = await _create(store, clock)
        created.status = OrderStatus.COMPLETED
        created.items[0].quantity = 99

        found = await store.find(created.order_id)
        assert found.status == OrderStatus.PENDING
        assert found.items[0].quantity == 2


class TestSqlOrderStore:
    """Durable-store specifics."""

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, sql_store, clock):
        order = build_order(1, tea_items(), 20, now=clock())
        await sql_store.create(order)

        with pytest.raises(PersistenceError) as exc_info:
            await sql_store.create(order)
        assert exc_info.value.backend_unavailable is False

    @pytest.mark.asyncio
    async def test_next_id_follows_external_rows(self, sql_store, clock):
        """Rows written by someone else still push the next id forward."""
        await sql_store.create(build_order(40, tea_items(), 20, now=clock()))
        assert await sql_store.next_id() == 41

    @pytest.mark.asyncio
    async def test_timestamps_come_back_timezone_aware(self, sql_store, clock):
        created = await _create(sql_store, clock)
        assert created.created_at.tzinfo is not None


class TestInMemoryOrderStore:
    """Fallback-store specifics."""

    @pytest.mark.asyncio
    async def test_counter_continues_after_sequence_advanced(self, memory_store, sequence, clock):
        """Ids issued by the durable store are never handed out again."""
        sequence.claim(25)
        created = await _create(memory_store, clock)
        assert created.order_id == 26
