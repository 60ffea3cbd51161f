"""Realtime feed tests — filtering, ordering, closing."""

import pytest

from app.realtime.feed import FeedFilter


@pytest.mark.asyncio
async def test_publish_reaches_matching_subscription(feed):
    sub = await feed.subscribe("notifications", filter=FeedFilter("user_id", "u1"))

    delivered = await feed.publish("notifications", {"user_id": "u1", "title": "Oi"})

    assert delivered == 1
    event = await sub.__anext__()
    assert event.table == "notifications"
    assert event.type == "INSERT"
    assert event.new["title"] == "Oi"
    assert event.commit_timestamp
    sub.close()


@pytest.mark.asyncio
async def test_publish_skips_other_users_and_tables(feed):
    sub = await feed.subscribe("notifications", filter=FeedFilter("user_id", "u1"))

    assert await feed.publish("notifications", {"user_id": "u2"}) == 0
    assert await feed.publish("invoices", {"user_id": "u1"}) == 0
    assert await feed.publish("notifications", {"user_id": "u1"}, event="UPDATE") == 0
    sub.close()


@pytest.mark.asyncio
async def test_unfiltered_subscription_sees_every_row(feed):
    sub = await feed.subscribe("notifications")
    assert await feed.publish("notifications", {"user_id": "anyone"}) == 1
    sub.close()


@pytest.mark.asyncio
async def test_events_arrive_in_publish_order(feed):
    sub = await feed.subscribe("notifications", filter=FeedFilter("user_id", "u1"))
    for title in ["A", "B", "A", "C"]:
        await feed.publish("notifications", {"user_id": "u1", "title": title})

    titles = [(await sub.__anext__()).new["title"] for _ in range(4)]
    assert titles == ["A", "B", "A", "C"]
    sub.close()


@pytest.mark.asyncio
async def test_close_ends_iteration_and_unregisters(feed):
    sub = await feed.subscribe("notifications", filter=FeedFilter("user_id", "u1"))
    await feed.publish("notifications", {"user_id": "u1", "title": "pending"})
    assert feed.subscriber_count("notifications") == 1

    sub.close()
    sub.close()

    assert feed.subscriber_count() == 0
    assert await feed.publish("notifications", {"user_id": "u1"}) == 0
    assert [event async for event in sub] == []


def test_filter_renders_like_a_column_predicate():
    f = FeedFilter("user_id", "u1")
    assert str(f) == "user_id=eq.u1"
    assert f.matches({"user_id": "u1"})
    assert not f.matches({"user_id": "u2"})
    assert not f.matches({})
