"""Mutation/query service tests — the store ↔ event stream contract.

Learn: These tests call the services directly (no HTTP) with a real
in-memory database and a real bus. They check that:
1. Every successful mutation publishes exactly one event, after the commit
2. Failed mutations (validation, not found, store failure) publish nothing
3. Validation failures never reach the store
"""

import pytest
from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from msgboard.db.models import Message
from msgboard.errors import NotFoundError, StoreError, ValidationError
from msgboard.realtime.bus import Topic
from msgboard.services.message_service import MessageService
from msgboard.services.query_service import MessageQueryService
from msgboard.store import MessageStore


@pytest.fixture
def svc(db_session, bus):
    return MessageService(db_session, bus)


@pytest.fixture
def query(db_session):
    return MessageQueryService(db_session)


@pytest.fixture
def subs(bus):
    """One subscriber per topic, registered before any mutation."""
    return {topic: bus.subscribe(topic) for topic in Topic}


async def _row_count(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(Message))
    return result.scalar_one()


def _queued(subscription) -> list:
    items = []
    while subscription.pending:
        items.append(subscription._queue.get_nowait())
    return items


# ═══════════════════════════════════════════════════════════
# Happy path
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_full_lifecycle_publishes_one_event_per_mutation(svc, query, subs):
    """post → update → delete, each visible on its own topic, then list is empty."""
    posted = await svc.post_message("A", "hi")
    assert posted.id == "1"
    assert posted.parent_id is None
    assert posted.created_at

    updated = await svc.update_message("1", "A", "hello")
    assert updated.content == "hello"
    assert updated.created_at == posted.created_at

    deleted = await svc.delete_message("1")
    assert deleted.id == "1"
    assert deleted.content == "hello"

    assert _queued(subs[Topic.MESSAGE_ADDED]) == [posted]
    assert _queued(subs[Topic.MESSAGE_UPDATED]) == [updated]
    assert _queued(subs[Topic.MESSAGE_DELETED]) == [deleted]
    assert await query.list_messages() == []


@pytest.mark.asyncio
async def test_ids_are_unique_and_not_reused(svc):
    first = await svc.post_message("a", "one")
    second = await svc.post_message("b", "two")
    await svc.delete_message(second.id)
    third = await svc.post_message("c", "three")

    ids = [first.id, second.id, third.id]
    assert len(set(ids)) == 3


@pytest.mark.asyncio
async def test_events_arrive_in_mutation_order(svc, subs):
    for i in range(4):
        await svc.post_message("u", f"msg {i}")

    contents = [m.content for m in _queued(subs[Topic.MESSAGE_ADDED])]
    assert contents == ["msg 0", "msg 1", "msg 2", "msg 3"]


@pytest.mark.asyncio
async def test_two_subscribers_receive_identical_event(svc, bus):
    a = bus.subscribe(Topic.MESSAGE_ADDED)
    b = bus.subscribe(Topic.MESSAGE_ADDED)

    posted = await svc.post_message("A", "hi")

    assert _queued(a) == [posted]
    assert _queued(b) == [posted]


@pytest.mark.asyncio
async def test_late_subscriber_misses_earlier_mutation(svc, bus):
    await svc.post_message("A", "before")
    late = bus.subscribe(Topic.MESSAGE_ADDED)
    after = await svc.post_message("A", "after")

    assert _queued(late) == [after]


@pytest.mark.asyncio
async def test_parent_id_stored_verbatim_even_if_dangling(svc, query):
    reply = await svc.post_message("B", "re: ghost", parent_id="999")
    assert reply.parent_id == "999"

    [listed] = await query.list_messages()
    assert listed.parent_id == "999"


@pytest.mark.asyncio
async def test_update_does_not_touch_parent_id(svc):
    parent = await svc.post_message("A", "root")
    reply = await svc.post_message("B", "reply", parent_id=parent.id)

    updated = await svc.update_message(reply.id, "B", "edited reply")
    assert updated.parent_id == parent.id


@pytest.mark.asyncio
async def test_list_returns_insertion_order(svc, query):
    for user in ("x", "y", "z"):
        await svc.post_message(user, "hello")

    listed = await query.list_messages()
    assert [m.user for m in listed] == ["x", "y", "z"]


# ═══════════════════════════════════════════════════════════
# Failures publish nothing
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize("user,content", [("", "hi"), ("A", ""), ("   ", "hi"), ("A", "\n")])
async def test_post_validation_never_reaches_store_or_bus(svc, subs, db_session, user, content):
    with pytest.raises(ValidationError):
        await svc.post_message(user, content)

    assert await _row_count(db_session) == 0
    assert subs[Topic.MESSAGE_ADDED].pending == 0


@pytest.mark.asyncio
async def test_update_validation_leaves_record_unchanged(svc, subs, query):
    await svc.post_message("A", "hi")

    with pytest.raises(ValidationError) as exc:
        await svc.update_message("1", "A", "")
    assert exc.value.field == "content"

    [listed] = await query.list_messages()
    assert listed.content == "hi"
    assert subs[Topic.MESSAGE_UPDATED].pending == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("missing_id", ["42", "not-a-number", ""])
async def test_update_missing_id_not_found(svc, subs, missing_id):
    with pytest.raises(NotFoundError):
        await svc.update_message(missing_id, "A", "hi")
    assert subs[Topic.MESSAGE_UPDATED].pending == 0


@pytest.mark.asyncio
async def test_delete_missing_id_not_found(svc, subs):
    with pytest.raises(NotFoundError):
        await svc.delete_message("42")
    assert subs[Topic.MESSAGE_DELETED].pending == 0


@pytest.mark.asyncio
async def test_second_delete_of_same_id_not_found(app, bus, subs):
    """Two deletes of one id: exactly one succeeds, one event is published."""
    async with app.state.session_factory() as s1, app.state.session_factory() as s2:
        first = MessageService(s1, bus)
        second = MessageService(s2, bus)
        posted = await first.post_message("A", "doomed")

        await first.delete_message(posted.id)
        with pytest.raises(NotFoundError):
            await second.delete_message(posted.id)

    assert len(_queued(subs[Topic.MESSAGE_DELETED])) == 1


@pytest.mark.asyncio
async def test_store_failure_prevents_publish(svc, subs, db_session, monkeypatch):
    """If the commit fails, the caller gets StoreError and nobody hears about it."""

    async def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    with pytest.raises(StoreError):
        await svc.post_message("A", "hi")

    assert subs[Topic.MESSAGE_ADDED].pending == 0


@pytest.mark.asyncio
async def test_store_failure_on_update_prevents_publish(svc, subs, db_session, monkeypatch):
    await svc.post_message("A", "hi")

    async def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    with pytest.raises(StoreError):
        await svc.update_message("1", "A", "hello")

    assert subs[Topic.MESSAGE_UPDATED].pending == 0


@pytest.mark.asyncio
async def test_store_failure_on_delete_keeps_row(svc, subs, query, monkeypatch):
    await svc.post_message("A", "hi")

    async def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("disk full"))

    monkeypatch.setattr(AsyncSession, "commit", failing_commit)

    with pytest.raises(StoreError):
        await svc.delete_message("1")

    assert subs[Topic.MESSAGE_DELETED].pending == 0
    [listed] = await query.list_messages()
    assert listed.id == "1"


@pytest.mark.asyncio
async def test_update_losing_race_to_delete_is_not_found(app, svc, subs, monkeypatch):
    """A delete that commits between update's read and write → NotFoundError."""
    await svc.post_message("A", "hi")
    read_row = MessageStore.get

    async def get_then_deleted_elsewhere(self, message_id):
        message = await read_row(self, message_id)
        async with app.state.session_factory() as other:
            await other.execute(sa_delete(Message).where(Message.id == message.id))
            await other.commit()
        return message

    monkeypatch.setattr(MessageStore, "get", get_then_deleted_elsewhere)

    with pytest.raises(NotFoundError):
        await svc.update_message("1", "A", "hello")

    assert subs[Topic.MESSAGE_UPDATED].pending == 0
