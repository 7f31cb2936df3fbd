"""
Tests for ringing, pickup, hold and hangup on a single shard.
"""

import asyncio
import pytest
from sqlalchemy import update

from callrelay.call.errors import CallPermissionError
from callrelay.call.events import CallRequest, Interaction, TypingStarted
from callrelay.call.state import MISSED, CallState
from callrelay.models import Mailbox
from tests.conftest import CALLEE, CALLER, embed_texts


async def ring(manager):
    return await manager.start_call(CallRequest(from_number=CALLER, to_number=CALLEE, started_by="user-1"))


async def connect(manager):
    session = await ring(manager)
    await manager.on_pickup(Interaction(channel_id="200", user_id="user-2", message_id=session.notification_message_id))
    return session


@pytest.mark.asyncio
async def test_pickup_connects_call(shard0, transport, repository):
    session = await ring(shard0)

    await shard0.on_pickup(Interaction(channel_id="200", user_id="user-2", message_id=session.notification_message_id))

    assert session.state == CallState.CONNECTED
    assert session.picked_up.by == "user-2"
    assert session._pickup_task is None

    stored = await repository.get_call(session.id)
    assert stored.picked_up.by == "user-2"

    # Buttons are removed from the incoming call notice
    [edit] = transport.edited
    assert edit.message_id == session.notification_message_id
    assert edit.payload.components == []

    assert "You picked up the call" in embed_texts(transport.sent_to("200")[-1])
    assert "The other side picked up" in embed_texts(transport.sent_to("100")[-1])


@pytest.mark.asyncio
async def test_second_pickup_is_a_no_op(shard0, transport):
    session = await connect(shard0)
    picked_up = session.picked_up
    sent_before = len(transport.sent)

    await shard0.on_pickup(Interaction(channel_id="200", user_id="user-3"))

    assert session.picked_up is picked_up
    assert len(transport.sent) == sent_before


@pytest.mark.asyncio
async def test_caller_cannot_pick_up(shard0):
    session = await ring(shard0)

    with pytest.raises(CallPermissionError) as exc_info:
        await shard0.on_pickup(Interaction(channel_id="100", user_id="user-1"))

    assert exc_info.value.key == "cantPickupOwnCall"
    assert session.picked_up is None


@pytest.mark.asyncio
async def test_unanswered_call_is_missed(shard0, transport, repository):
    session = await ring(shard0)

    await session.expire_ring()

    assert session.state == CallState.ENDED
    assert session.ended.by == MISSED
    assert shard0.active_sessions == {}

    stored = await repository.get_call(session.id)
    assert not stored.active
    assert stored.ended.by == MISSED

    assert "You missed a call" in embed_texts(transport.sent_to("200")[-1])

    caller_notice = transport.sent_to("100")[-1]
    assert "Leave a message after the tone" in embed_texts(caller_notice)
    [mailbox_button] = caller_notice.payload.components[0]["components"]
    assert mailbox_button["custom_id"] == f"mailbox-send-initiate-{CALLEE}"


@pytest.mark.asyncio
async def test_full_mailbox_offers_no_message_button(shard0, transport, session_factory):
    async with session_factory() as db:
        await db.execute(update(Mailbox).where(Mailbox.number == CALLEE).values(messages=[{"id": i} for i in range(25)]))
        await db.commit()
    session = await ring(shard0)

    await session.expire_ring()

    caller_notice = transport.sent_to("100")[-1]
    assert "(Mailbox full)" in embed_texts(caller_notice)
    assert caller_notice.payload.components is None


@pytest.mark.asyncio
async def test_ring_deadline_expires_on_its_own(shard0, test_settings, repository):
    test_settings.ring_timeout_seconds = 0.05
    session = await ring(shard0)

    await asyncio.sleep(0.5)

    assert session.ended is not None
    assert session.ended.by == MISSED
    assert not (await repository.get_call(session.id)).active


@pytest.mark.asyncio
async def test_missed_call_cannot_be_picked_up(shard0):
    session = await ring(shard0)
    await session.expire_ring()

    with pytest.raises(CallPermissionError) as exc_info:
        await shard0.on_pickup(Interaction(channel_id="200", user_id="user-2"))
    assert exc_info.value.key == "notInCall"

    # Directly on the session it is simply ignored
    await session.pickup(Interaction(channel_id="200", user_id="user-2"))
    assert session.picked_up is None
    assert session.ended.by == MISSED


@pytest.mark.asyncio
async def test_expiry_after_pickup_does_nothing(shard0):
    session = await connect(shard0)

    await session.expire_ring()

    assert session.state == CallState.CONNECTED
    assert session.ended is None


@pytest.mark.asyncio
async def test_hold_requires_pickup(shard0):
    await ring(shard0)

    with pytest.raises(CallPermissionError) as exc_info:
        await shard0.on_hold(Interaction(channel_id="100", user_id="user-1"))
    assert exc_info.value.key == "holdNotPickedUp"


@pytest.mark.asyncio
async def test_only_holding_side_releases_hold(shard0, transport, repository):
    session = await connect(shard0)

    await shard0.on_hold(Interaction(channel_id="100", user_id="user-1"))
    assert session.on_hold
    assert session.hold.holding_side == "100"
    assert (await repository.get_call(session.id)).hold.on_hold
    assert "put you on hold" in embed_texts(transport.sent_to("200")[-1])

    with pytest.raises(CallPermissionError) as exc_info:
        await shard0.on_hold(Interaction(channel_id="200", user_id="user-2"))
    assert exc_info.value.key == "holdNotYours"
    assert session.on_hold

    # No typing indicators while on hold
    await shard0.on_typing(TypingStarted(channel_id="200", user_id="user-2"))
    assert transport.typing == []

    await shard0.on_hold(Interaction(channel_id="100", user_id="user-1"))
    assert not session.on_hold
    assert session.hold.holding_side is None
    assert not (await repository.get_call(session.id)).hold.on_hold


@pytest.mark.asyncio
async def test_hangup_ends_call_for_both_sides(shard0, transport, repository):
    session = await connect(shard0)

    await shard0.on_hangup(Interaction(channel_id="100", user_id="user-1"))

    assert session.state == CallState.ENDED
    assert session.ended.by == "user-1"
    assert shard0.find_by_channel("100") is None

    stored = await repository.get_call(session.id)
    assert not stored.active
    assert stored.ended.by == "user-1"

    assert "You hung up the call" in embed_texts(transport.sent_to("100")[-1])
    assert "The other side hung up" in embed_texts(transport.sent_to("200")[-1])

    # A second hangup on the same session changes nothing
    sent_before = len(transport.sent)
    await session.hangup(Interaction(channel_id="200", user_id="user-2"))
    assert session.ended.by == "user-1"
    assert len(transport.sent) == sent_before


@pytest.mark.asyncio
async def test_hangup_while_ringing_cancels_deadline(shard0, transport):
    session = await ring(shard0)
    task = session._pickup_task

    await shard0.on_hangup(Interaction(channel_id="200", user_id="user-2"))
    await asyncio.sleep(0)

    assert task.cancelled() or task.done()
    assert session.ended.by == "user-2"
    assert "before the call was answered" in embed_texts(transport.sent_to("100")[-1])
    assert transport.edited[-1].payload.components == []


@pytest.mark.asyncio
async def test_admin_end_and_metrics(shard0):
    session = await connect(shard0)

    [info] = await shard0.get_active_sessions()
    assert info["call_id"] == session.id
    assert info["state"] == "connected"

    assert await shard0.end_session(session.id, ended_by="system")
    assert not await shard0.end_session(session.id)
    assert await shard0.get_active_sessions() == []
