"""
Call manager: the per-shard registry of live calls.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

from callrelay.call.errors import CallCoordinationError, CallError, CallNotFoundError, CallPermissionError
from callrelay.call.events import CallRequest, InboundMessage, Interaction, MessageDeleted, TypingStarted
from callrelay.call.services import CallServices
from callrelay.call.session import CallSession
from callrelay.call.state import NUMBER_LOST, AtAndBy, CallSide, CallSnapshot, utcnow
from callrelay.utils.logging import LoggerMixin, call_id_var


class CallManager(LoggerMixin):
    """
    Tracks the calls touching channels on this shard.

    Routes platform events to the right session and serves the procedures
    peer shards invoke to keep their copies in sync.
    """

    def __init__(self, services: CallServices):
        """Initialize the call manager."""
        self.services = services
        self.active_sessions: Dict[str, CallSession] = {}
        # Numbers with a call being set up on this shard
        self.dialing: Set[str] = set()
        self._metrics_task: Optional[asyncio.Task] = None

    @property
    def coordinator(self):
        return self.services.coordinator

    @property
    def repository(self):
        return self.services.repository

    async def start(self, rebuild: bool = True):
        """Expose remote procedures and reload calls from the store."""
        self.coordinator.register("register_call", self._remote_register_call)
        self.coordinator.register("apply_pickup", self._remote_apply_pickup)
        self.coordinator.register("apply_update", self._remote_apply_update)
        self.coordinator.register("call_ended", self._remote_call_ended)

        if rebuild:
            await self.rebuild()

        self._metrics_task = asyncio.create_task(self._collect_metrics())
        self.logger.info(
            "Call manager started",
            shard_id=self.coordinator.shard_id,
            active_sessions=len(self.active_sessions),
        )

    async def stop(self):
        """Stop background work. Calls stay active in the store."""
        if self._metrics_task:
            self._metrics_task.cancel()
            self._metrics_task = None

        for session in list(self.active_sessions.values()):
            session.cancel_pickup_timer()
        self.active_sessions.clear()
        self.dialing.clear()

        self.logger.info("Call manager stopped")

    # Registry

    def register(self, session: CallSession):
        self.active_sessions[session.id] = session

    def unregister(self, call_id: str):
        self.active_sessions.pop(call_id, None)

    def reserve_numbers(self, *numbers: str) -> Optional[str]:
        """
        Claim numbers for a call being set up.

        Returns:
            The first number that is already claimed or in a call here, or
            None when all of them were claimed
        """
        busy = {session.from_number for session in self.active_sessions.values()}
        busy.update(session.to_number for session in self.active_sessions.values())
        for number in numbers:
            if number in self.dialing or number in busy:
                return number
        self.dialing.update(numbers)
        return None

    def release_numbers(self, *numbers: str):
        self.dialing.difference_update(numbers)

    async def get_session(self, call_id: str) -> Optional[CallSession]:
        return self.active_sessions.get(call_id)

    def find_by_channel(self, channel_id: str) -> Optional[CallSession]:
        for session in self.active_sessions.values():
            if session.get_side(channel_id) is not None:
                return session
        return None

    async def start_call(self, request: CallRequest) -> CallSession:
        """
        Place a call from the caller's channel.

        Raises:
            CallError: Validation, delivery or coordination failure
        """
        session = CallSession(
            self,
            from_number=request.from_number,
            to_number=request.to_number,
            started_by=request.started_by,
            random_call=request.random,
        )
        await session.initiate()
        return session

    async def load(self, call_id: str, side: CallSide, snapshot: Optional[CallSnapshot] = None) -> CallSession:
        """
        Build a session from the store and register it.

        Raises:
            CallNotFoundError: No active call with that id
            CallCoordinationError: One side's number is gone; the call is ended
        """
        call_id_var.set(call_id)
        existing = self.active_sessions.get(call_id)
        if existing is not None:
            return existing

        if snapshot is None:
            snapshot = await self.repository.get_call(call_id)
        if snapshot is None or not snapshot.active:
            raise CallNotFoundError(call_id)

        if not snapshot.endpoints_present:
            await self._end_lost(call_id)
            raise CallCoordinationError("numberLost", call_id=call_id)

        session = CallSession.from_snapshot(self, snapshot, side)
        other = snapshot.to_endpoint if side == CallSide.FROM else snapshot.from_endpoint
        shard_id = await self.coordinator.resolve_shard_for(other.channel_id)
        if shard_id is None:
            await self._end_lost(call_id)
            raise CallCoordinationError("numberLost", call_id=call_id)
        session.other_side_shard_id = None if self.coordinator.is_local(shard_id) else shard_id

        for record in await self.repository.messages_for_call(call_id):
            session.message_cache[record.original_message_id] = record

        self.register(session)

        if session.owns_ringing_side and not session.picked_up:
            elapsed = (utcnow() - session.started.at).total_seconds()
            session.arm_pickup_timer(self.services.settings.ring_timeout_seconds - elapsed)

        self.logger.info(
            "Call loaded",
            call_id=call_id,
            side=side.value,
            other_side_shard_id=session.other_side_shard_id,
            relayed_messages=len(session.message_cache),
        )
        return session

    async def rebuild(self):
        """Recreate sessions for active calls whose channels live here."""
        for snapshot in await self.repository.active_calls():
            if snapshot.id in self.active_sessions:
                continue
            if not snapshot.endpoints_present:
                await self._end_lost(snapshot.id)
                continue

            if self.coordinator.is_local(await self.coordinator.resolve_shard_for(snapshot.from_endpoint.channel_id)):
                side = CallSide.FROM
            elif self.coordinator.is_local(await self.coordinator.resolve_shard_for(snapshot.to_endpoint.channel_id)):
                side = CallSide.TO
            else:
                continue

            try:
                await self.load(snapshot.id, side, snapshot=snapshot)
            except CallError as e:
                self.log_error("rebuild_call", e, call_id=snapshot.id)

    async def _end_lost(self, call_id: str):
        self.logger.warning("Call lost one of its numbers", call_id=call_id)
        await self.repository.end_call(call_id, AtAndBy(at=utcnow(), by=NUMBER_LOST))

    async def end_session(self, call_id: str, ended_by: str = NUMBER_LOST) -> bool:
        """
        End a call administratively.

        Returns:
            True if the call was ended, False if not found
        """
        session = self.active_sessions.get(call_id)
        if not session:
            return False
        return await session.end(ended_by)

    async def get_active_sessions(self) -> List[Dict]:
        """Get information about all active sessions."""
        return [session.get_metrics() for session in self.active_sessions.values()]

    async def count_messages(self, call_id: str) -> int:
        return await self.repository.count_messages(call_id)

    # Platform events

    async def on_message(self, message: InboundMessage):
        if message.author_is_bot:
            return
        session = self.find_by_channel(message.channel_id)
        if session:
            await session.message_create(message)

    async def on_message_update(self, message: InboundMessage):
        if message.author_is_bot:
            return
        session = self.find_by_channel(message.channel_id)
        if session:
            await session.message_update(message)

    async def on_message_delete(self, event: MessageDeleted):
        session = self.find_by_channel(event.channel_id)
        if session:
            await session.message_delete(event)

    async def on_typing(self, event: TypingStarted):
        session = self.find_by_channel(event.channel_id)
        if session:
            await session.typing_start(event)

    def _require_session(self, interaction: Interaction) -> CallSession:
        session = self.find_by_channel(interaction.channel_id)
        if session is None:
            raise CallPermissionError("notInCall")
        return session

    async def on_pickup(self, interaction: Interaction) -> CallSession:
        session = self._require_session(interaction)
        await session.pickup(interaction)
        return session

    async def on_hangup(self, interaction: Interaction) -> CallSession:
        session = self._require_session(interaction)
        await session.hangup(interaction)
        return session

    async def on_hold(self, interaction: Interaction) -> CallSession:
        session = self._require_session(interaction)
        await session.toggle_hold(interaction)
        return session

    # Procedures invoked by peer shards

    async def _remote_register_call(self, context: Dict[str, Any]) -> Dict[str, Any]:
        session = await self.load(context["call_id"], CallSide(context["side"]))
        return {"call_id": session.id, "state": session.state.value}

    def _remote_session(self, context: Dict[str, Any]) -> CallSession:
        session = self.active_sessions.get(context["call_id"])
        if session is None:
            raise CallNotFoundError(context["call_id"])
        return session

    async def _remote_apply_pickup(self, context: Dict[str, Any]) -> Dict[str, Any]:
        session = self._remote_session(context)
        session.apply_pickup(context["picked_up"])
        return {"call_id": session.id, "state": session.state.value}

    async def _remote_apply_update(self, context: Dict[str, Any]) -> Dict[str, Any]:
        session = self._remote_session(context)
        session.apply_update(context.get("fields") or {})
        return {"call_id": session.id, "state": session.state.value}

    async def _remote_call_ended(self, context: Dict[str, Any]) -> Dict[str, Any]:
        session = self.active_sessions.get(context["call_id"])
        ended = False
        if session is not None:
            # The ending shard already wrote the store
            ended = await session.end(context.get("ended_by") or NUMBER_LOST, propagate=False, persist=False)
        return {"call_id": context["call_id"], "ended": ended}

    async def _collect_metrics(self):
        """Background task to log registry size."""
        while True:
            await asyncio.sleep(30)
            if self.active_sessions:
                self.logger.info(
                    "Call manager metrics",
                    active_sessions=len(self.active_sessions),
                    connected=sum(1 for s in self.active_sessions.values() if s.picked_up),
                    on_hold=sum(1 for s in self.active_sessions.values() if s.on_hold),
                )
