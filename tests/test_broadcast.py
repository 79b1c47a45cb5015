"""
Tests for the broadcast channel.

Tests: subscribe snapshot, fan-out, dropped subscribers, buffered events
"""

import pytest

from app.services.broadcast import BroadcastChannel, OrderEvent
from app.services.lifecycle import build_order
from tests.conftest import FakeSubscriber, tea_items


def _order(order_id, clock):
    return build_order(order_id, tea_items(), 20, now=clock())


class TestSubscribe:
    """Tests for BroadcastChannel.subscribe()."""

    @pytest.mark.asyncio
    async def test_snapshot_sent_immediately(self, channel, clock):
        orders = [_order(2, clock), _order(1, clock)]

        async def load():
            return orders

        subscriber = FakeSubscriber()
        subscriber_id = await channel.subscribe(subscriber, load)

        assert subscriber_id in channel
        assert subscriber.messages[0]["event"] == OrderEvent.LOAD_ORDERS
        assert [o["orderId"] for o in subscriber.messages[0]["data"]] == [2, 1]

    @pytest.mark.asyncio
    async def test_events_during_snapshot_follow_it(self, channel, clock):
        """An event published while the snapshot loads is delivered right after it."""
        late = _order(5, clock)

        async def load():
            await channel.order_created(late)
            return []

        subscriber = FakeSubscriber()
        await channel.subscribe(subscriber, load)

        assert subscriber.events == [OrderEvent.LOAD_ORDERS, OrderEvent.NEW_ORDER]
        assert subscriber.messages[1]["data"]["orderId"] == 5

    @pytest.mark.asyncio
    async def test_failed_snapshot_load_unregisters(self, channel):
        async def load():
            raise RuntimeError("store down")

        with pytest.raises(RuntimeError):
            await channel.subscribe(FakeSubscriber(), load)
        assert channel.subscriber_count == 0


class TestPublish:
    """Tests for BroadcastChannel.publish() and the event helpers."""

    @pytest.mark.asyncio
    async def test_every_subscriber_receives_each_event(self, channel, clock):
        subscribers = [FakeSubscriber() for _ in range(3)]
        for s in subscribers:
            await channel.subscribe(s, _empty)

        delivered = await channel.order_created(_order(1, clock))

        assert delivered == 3
        for s in subscribers:
            assert s.events == [OrderEvent.LOAD_ORDERS, OrderEvent.NEW_ORDER]

    @pytest.mark.asyncio
    async def test_all_subscribers_see_same_order(self, channel, clock):
        a, b = FakeSubscriber(), FakeSubscriber()
        await channel.subscribe(a, _empty)
        await channel.subscribe(b, _empty)

        order = _order(1, clock)
        await channel.order_created(order)
        await channel.order_updated(order)
        await channel.order_deleted(1)

        assert a.events == b.events == [
            OrderEvent.LOAD_ORDERS,
            OrderEvent.NEW_ORDER,
            OrderEvent.ORDER_UPDATED,
            OrderEvent.ORDER_DELETED,
        ]
        assert a.messages[-1]["data"] == {"orderId": 1}

    @pytest.mark.asyncio
    async def test_failing_subscriber_is_dropped(self, channel, clock):
        healthy, broken = FakeSubscriber(), FakeSubscriber()
        await channel.subscribe(healthy, _empty)
        await channel.subscribe(broken, _empty)
        broken.fail = True

        assert await channel.order_created(_order(1, clock)) == 1
        assert channel.subscriber_count == 1

    @pytest.mark.asyncio
    async def test_unsubscribed_client_gets_nothing(self, channel, clock):
        subscriber = FakeSubscriber()
        subscriber_id = await channel.subscribe(subscriber, _empty)
        channel.unsubscribe(subscriber_id)

        assert await channel.order_created(_order(1, clock)) == 0
        assert subscriber.events == [OrderEvent.LOAD_ORDERS]

    @pytest.mark.asyncio
    async def test_wire_format_is_camel_case(self, channel, clock):
        subscriber = FakeSubscriber()
        await channel.subscribe(subscriber, _empty)
        await channel.order_created(_order(1, clock))

        data = subscriber.messages[-1]["data"]
        assert set(data) == {"orderId", "items", "total", "status", "createdAt", "updatedAt"}
        assert data["status"] == "pending"


class TestSendSnapshot:
    """Tests for requestOrders resync."""

    @pytest.mark.asyncio
    async def test_resync_sends_fresh_list(self, channel, clock):
        subscriber = FakeSubscriber()
        subscriber_id = await channel.subscribe(subscriber, _empty)

        assert await channel.send_snapshot(subscriber_id, [_order(1, clock)])
        assert subscriber.events == [OrderEvent.LOAD_ORDERS, OrderEvent.LOAD_ORDERS]
        assert len(subscriber.messages[-1]["data"]) == 1

    @pytest.mark.asyncio
    async def test_unknown_subscriber(self):
        assert await BroadcastChannel().send_snapshot("nobody", []) is False


async def _empty():
    return []
