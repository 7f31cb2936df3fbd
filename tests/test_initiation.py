"""
Tests for placing calls: validation, ringing and delivery failures.
"""

import asyncio

import pytest

from callrelay.call.errors import CallDeliveryError, CallValidationError
from callrelay.call.events import CallRequest
from callrelay.call.state import CallState
from tests.conftest import BLOCKER, CALLEE, CALLER, EXPIRED, OTHER, SUPPORT, embed_texts


def dial(from_number=CALLER, to_number=CALLEE, started_by="user-1"):
    return CallRequest(from_number=from_number, to_number=to_number, started_by=started_by)


@pytest.mark.asyncio
async def test_call_to_local_number_rings_callee(shard0, transport, repository):
    """A valid call notifies the callee, persists and registers the session."""
    session = await shard0.start_call(dial())

    assert session.state == CallState.RINGING
    assert session.primary
    assert session.other_side_shard_id is None
    assert shard0.find_by_channel("100") is session
    assert shard0.find_by_channel("200") is session

    [notification] = transport.sent_to("200")
    assert notification.message_id == session.notification_message_id
    custom_ids = [b["custom_id"] for b in notification.payload.components[0]["components"]]
    assert custom_ids == ["call-pickup", "call-hangup"]
    assert CALLER in notification.payload.embeds[0]["description"]
    assert session.id in notification.payload.embeds[0]["description"]

    stored = await repository.get_call(session.id)
    assert stored.active
    assert stored.from_number == CALLER
    assert stored.to_number == CALLEE
    assert stored.picked_up is None
    assert stored.notification_message_id == session.notification_message_id

    # Callee is on this shard, so the ring deadline runs here
    assert session._pickup_task is not None


@pytest.mark.asyncio
async def test_vanity_number_is_dialed_by_keypad(shard0):
    session = await shard0.start_call(dial(to_number="0301-000-000A"))
    assert session.to_number == CALLEE


@pytest.mark.asyncio
async def test_support_alias_pings_support_role(shard0, transport, test_settings):
    test_settings.support_role_id = "role-611"

    session = await shard0.start_call(dial(to_number="*611"))

    assert session.to_number == SUPPORT
    [notification] = transport.sent_to("611")
    assert notification.payload.content == "<@&role-611>"
    assert notification.payload.allowed_mentions == {"roles": ["role-611"]}


@pytest.mark.asyncio
@pytest.mark.parametrize("from_number,to_number,key", [
    (CALLER, "12345", "numberInvalid"),
    (CALLER, CALLER, "callingSelf"),
    ("03019999999", CALLEE, "invalidFrom"),
    (EXPIRED, CALLEE, "thisSideExpired"),
    (CALLER, "03019999999", "otherSideNotFound"),
    (CALLER, EXPIRED, "otherSideExpired"),
    (CALLER, BLOCKER, "otherSideBlockedYou"),
])
async def test_rejected_calls_leave_no_trace(shard0, transport, repository, from_number, to_number, key):
    with pytest.raises(CallValidationError) as exc_info:
        await shard0.start_call(dial(from_number=from_number, to_number=to_number))

    assert exc_info.value.key == key
    assert transport.sent == []
    assert await repository.active_calls() == []
    assert shard0.active_sessions == {}


@pytest.mark.asyncio
async def test_busy_numbers_cannot_be_called(shard0):
    await shard0.start_call(dial())

    with pytest.raises(CallValidationError) as exc_info:
        await shard0.start_call(dial(from_number=OTHER, to_number=CALLEE))
    assert exc_info.value.key == "otherSideInCall"

    with pytest.raises(CallValidationError) as exc_info:
        await shard0.start_call(dial(from_number=CALLER, to_number=OTHER))
    assert exc_info.value.key == "thisSideInCall"


@pytest.mark.asyncio
async def test_simultaneous_calls_to_one_number(shard0, transport, repository):
    first, second = await asyncio.gather(
        shard0.start_call(dial(from_number=CALLER, to_number=CALLEE)),
        shard0.start_call(dial(from_number=OTHER, to_number=CALLEE)),
        return_exceptions=True,
    )

    assert first.state == CallState.RINGING
    assert isinstance(second, CallValidationError)
    assert second.key == "otherSideInCall"
    assert len(transport.sent_to("200")) == 1
    assert [call.id for call in await repository.active_calls()] == [first.id]
    assert shard0.dialing == set()


@pytest.mark.asyncio
async def test_reservations_are_released_after_rejection(shard0):
    with pytest.raises(CallValidationError):
        await shard0.start_call(dial(to_number="03019999999"))

    assert shard0.dialing == set()
    session = await shard0.start_call(dial())
    assert session.state == CallState.RINGING


@pytest.mark.asyncio
async def test_call_placed_elsewhere_meanwhile_wins(shard0, shard1, transport, repository, monkeypatch):
    existing = await shard0.start_call(dial())

    # Another shard's lookup ran before the first call was stored
    fetch_numbers = repository.fetch_numbers

    async def stale_fetch(numbers):
        lookups = await fetch_numbers(numbers)
        for lookup in lookups.values():
            lookup.in_call = False
        return lookups

    monkeypatch.setattr(repository, "fetch_numbers", stale_fetch)

    with pytest.raises(CallValidationError) as exc_info:
        await shard1.start_call(dial(from_number=OTHER, to_number=CALLEE))

    assert exc_info.value.key == "otherSideInCall"
    stripped = transport.edited[-1]
    assert stripped.channel_id == "200"
    assert stripped.message_id == transport.sent_to("200")[-1].message_id
    assert stripped.payload.components == []
    assert shard1.active_sessions == {}
    assert [call.id for call in await repository.active_calls()] == [existing.id]


@pytest.mark.asyncio
async def test_undeliverable_notification_persists_nothing(shard0, transport, repository):
    transport.fail_channels.add("200")

    with pytest.raises(CallDeliveryError) as exc_info:
        await shard0.start_call(dial())

    assert exc_info.value.key == "couldntReachOtherSide"
    assert "Couldn't reach the other side" in embed_texts(transport.sent_to("100")[-1])
    assert await repository.active_calls() == []
    assert shard0.active_sessions == {}


@pytest.mark.asyncio
async def test_unresolvable_channel_is_reported(shard0, transport, repository):
    del transport.channels["200"]

    with pytest.raises(CallDeliveryError) as exc_info:
        await shard0.start_call(dial())

    assert exc_info.value.key == "numberMissingChannel"
    # Only the caller hears about it
    [notice] = transport.sent
    assert notice.channel_id == "100"
    assert "can't be found" in embed_texts(notice)
    assert await repository.active_calls() == []
