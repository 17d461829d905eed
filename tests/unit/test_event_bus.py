"""
Unit tests for the in-process live-query bus
"""
import asyncio
import pytest

from crewmate.core.events import EventBus, notifications_topic, plan_topic


@pytest.mark.asyncio
async def test_publish_reaches_topic_subscribers_only():
    bus = EventBus()
    plan_sub = bus.subscribe(plan_topic(1))
    other_sub = bus.subscribe(plan_topic(2))

    assert bus.publish(plan_topic(1), "attendee_joined", user_id=7) == 1

    event = await plan_sub.next(timeout=1)
    assert event.kind == "attendee_joined"
    assert event.payload == {"user_id": 7}
    assert other_sub.pending() == 0


@pytest.mark.asyncio
async def test_slow_subscriber_drops_oldest():
    bus = EventBus(queue_size=2)
    subscription = bus.subscribe("topic")

    for i in range(3):
        bus.publish("topic", "tick", n=i)

    assert subscription.dropped == 1
    assert [(await subscription.next(timeout=1)).payload["n"] for _ in range(2)] == [1, 2]


@pytest.mark.asyncio
async def test_context_manager_unsubscribes():
    bus = EventBus()
    async with bus.subscribe(notifications_topic(1), notifications_topic(2)) as subscription:
        assert bus.subscriber_count() == 1
        assert bus.subscriber_count(notifications_topic(2)) == 1

    assert subscription.closed
    assert bus.subscriber_count() == 0
    assert bus.publish(notifications_topic(1), "notification_created") == 0


@pytest.mark.asyncio
async def test_closed_subscription_raises_and_stops_iteration():
    bus = EventBus()
    subscription = bus.subscribe("topic")
    subscription.unsubscribe()
    subscription.unsubscribe()

    with pytest.raises(RuntimeError):
        await subscription.next()
    assert [event async for event in subscription] == []


@pytest.mark.asyncio
async def test_next_times_out():
    bus = EventBus()
    subscription = bus.subscribe("topic")

    with pytest.raises(asyncio.TimeoutError):
        await subscription.next(timeout=0.01)


def test_subscribe_requires_topic():
    with pytest.raises(ValueError):
        EventBus().subscribe()
