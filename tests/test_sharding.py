"""
Tests for calls spanning two shards: registration, propagation, peer loss
and rebuilding from the store.
"""

import pytest
from sqlalchemy import delete

from callrelay.call.manager import CallManager
from callrelay.call.errors import CallCoordinationError, CallNotFoundError
from callrelay.call.events import CallRequest, InboundMessage, Interaction
from callrelay.call.state import NUMBER_LOST, CallSide, CallState
from callrelay.models import Number
from callrelay.shard import InProcessShardCoordinator, ShardCluster, ShardInvocationError, shard_id_for_guild
from tests.conftest import CALLER, GUILD_SHARD_0, GUILD_SHARD_1, REMOTE, MockTransport, embed_texts


def dial_remote():
    return CallRequest(from_number=CALLER, to_number=REMOTE, started_by="user-1")


@pytest.mark.asyncio
async def test_call_registers_on_callee_shard(shard0, shard1, transport):
    session = await shard0.start_call(dial_remote())

    assert session.other_side_shard_id == 1
    # The ring deadline belongs to the callee's shard
    assert session._pickup_task is None

    peer = shard1.active_sessions[session.id]
    assert not peer.primary
    assert peer.other_side_shard_id == 0
    assert peer.state == CallState.RINGING
    assert peer._pickup_task is not None
    assert transport.sent_to("300")[0].message_id == peer.notification_message_id


@pytest.mark.asyncio
async def test_pickup_propagates_to_caller_shard(shard0, shard1, transport):
    session = await shard0.start_call(dial_remote())

    await shard1.on_pickup(Interaction(channel_id="300", user_id="user-3"))

    assert session.state == CallState.CONNECTED
    assert session.picked_up.by == "user-3"
    assert session.picked_up.at == shard1.active_sessions[session.id].picked_up.at
    assert "The other side picked up" in embed_texts(transport.sent_to("100")[-1])


@pytest.mark.asyncio
async def test_hold_and_relay_across_shards(shard0, shard1, transport):
    session = await shard0.start_call(dial_remote())
    await shard1.on_pickup(Interaction(channel_id="300", user_id="user-3"))
    peer = shard1.active_sessions[session.id]

    await shard0.on_hold(Interaction(channel_id="100", user_id="user-1"))
    assert peer.on_hold
    assert peer.hold.holding_side == "100"

    await shard1.on_message(InboundMessage(id="r1", channel_id="300", author_id="user-3", author_tag="carol", content="still there?"))
    assert transport.sent_to("100")[-1].payload.content == "**carol** 📞 still there?"
    assert "r1" in peer.message_cache


@pytest.mark.asyncio
async def test_hangup_removes_both_copies(shard0, shard1, repository):
    session = await shard0.start_call(dial_remote())
    await shard1.on_pickup(Interaction(channel_id="300", user_id="user-3"))

    await shard1.on_hangup(Interaction(channel_id="300", user_id="user-3"))

    assert session.id not in shard0.active_sessions
    assert session.id not in shard1.active_sessions
    assert session.ended.by == "user-3"
    stored = await repository.get_call(session.id)
    assert not stored.active
    assert stored.ended.by == "user-3"


@pytest.mark.asyncio
async def test_unreachable_callee_shard_ends_new_call(shard0, transport, repository):
    # No shard 1 has joined the cluster
    with pytest.raises(CallCoordinationError):
        await shard0.start_call(dial_remote())

    assert shard0.active_sessions == {}
    assert await repository.active_calls() == []
    assert "could no longer be reached" in embed_texts(transport.sent_to("100")[-1])


@pytest.mark.asyncio
async def test_losing_peer_mid_call_ends_it(shard0, shard1, cluster, repository):
    session = await shard0.start_call(dial_remote())
    await shard1.on_pickup(Interaction(channel_id="300", user_id="user-3"))

    cluster.leave(1)
    await shard0.on_hold(Interaction(channel_id="100", user_id="user-1"))

    assert session.state == CallState.ENDED
    assert session.ended.by == NUMBER_LOST
    assert shard0.active_sessions == {}
    assert (await repository.get_call(session.id)).ended.by == NUMBER_LOST


@pytest.mark.asyncio
async def test_restarted_shard_rebuilds_its_calls(shard0, shard1, make_manager):
    session = await shard0.start_call(dial_remote())
    await shard1.on_pickup(Interaction(channel_id="300", user_id="user-3"))
    await shard1.on_message(InboundMessage(id="r1", channel_id="300", author_id="user-3", author_tag="carol", content="hi"))

    restarted = await make_manager(1, rebuild=True)

    rebuilt = restarted.active_sessions[session.id]
    assert not rebuilt.primary
    assert rebuilt.other_side_shard_id == 0
    assert rebuilt.picked_up.by == "user-3"
    assert "r1" in rebuilt.message_cache
    assert rebuilt._pickup_task is None


@pytest.mark.asyncio
async def test_rebuild_rearms_ring_deadline(shard0, shard1, make_manager):
    session = await shard0.start_call(dial_remote())

    restarted = await make_manager(1, rebuild=True)

    assert restarted.active_sessions[session.id]._pickup_task is not None


@pytest.mark.asyncio
async def test_loading_call_with_lost_number_ends_it(shard0, shard1, session_factory, repository):
    session = await shard0.start_call(dial_remote())
    async with session_factory() as db:
        await db.execute(delete(Number).where(Number.number == REMOTE))
        await db.commit()
    restarted = CallManager(shard0.services)

    with pytest.raises(CallCoordinationError) as exc_info:
        await restarted.load(session.id, CallSide.FROM)

    assert exc_info.value.key == "numberLost"
    assert (await repository.get_call(session.id)).ended.by == NUMBER_LOST


@pytest.mark.asyncio
async def test_loading_unknown_call_fails(shard0):
    with pytest.raises(CallNotFoundError):
        await shard0.load("no-such-call", CallSide.TO)


@pytest.mark.asyncio
async def test_remote_update_rejects_unknown_fields(shard0, shard1):
    session = await shard0.start_call(dial_remote())

    with pytest.raises(ShardInvocationError):
        await shard0.coordinator.invoke_on_shard(1, "apply_update", {"call_id": session.id, "fields": {"active": False}})

    assert shard1.active_sessions[session.id].active


@pytest.mark.asyncio
async def test_call_ended_is_idempotent(shard0, shard1):
    session = await shard0.start_call(dial_remote())
    context = {"call_id": session.id, "ended_by": "user-1"}

    first = await shard0.coordinator.invoke_on_shard(1, "call_ended", context)
    second = await shard0.coordinator.invoke_on_shard(1, "call_ended", context)

    assert first == {"call_id": session.id, "ended": True}
    assert second == {"call_id": session.id, "ended": False}


def test_guilds_are_partitioned_by_snowflake():
    assert shard_id_for_guild(GUILD_SHARD_0, 2) == 0
    assert shard_id_for_guild(GUILD_SHARD_1, 2) == 1
    assert shard_id_for_guild(GUILD_SHARD_1, 1) == 0


@pytest.mark.asyncio
async def test_channel_resolution():
    transport = MockTransport({"dm": None, "guild": GUILD_SHARD_1})
    coordinator = InProcessShardCoordinator(1, 2, transport, cluster=ShardCluster())

    assert await coordinator.resolve_shard_for("guild") == 1
    # Direct messages belong to the first shard
    assert await coordinator.resolve_shard_for("dm") == 0
    assert await coordinator.resolve_shard_for("missing") is None

    single = InProcessShardCoordinator(0, 1, transport)
    assert await single.resolve_shard_for("missing") == 0


@pytest.mark.asyncio
async def test_unknown_procedure_is_an_invocation_error():
    cluster = ShardCluster()
    transport = MockTransport()
    first = InProcessShardCoordinator(0, 2, transport, cluster=cluster)
    InProcessShardCoordinator(1, 2, transport, cluster=cluster)

    with pytest.raises(ShardInvocationError) as exc_info:
        await first.invoke_on_shard(1, "no_such_procedure", {})
    assert exc_info.value.shard_id == 1
