"""
A single call between two numbers, as seen from one shard.
"""

import asyncio
import uuid
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from callrelay.call.errors import (
    CallCoordinationError,
    CallDeliveryError,
    CallPermissionError,
    CallValidationError,
)
from callrelay.call.events import InboundMessage, Interaction, MessageDeleted, TypingStarted
from callrelay.call.relay import (
    STYLE_PRIMARY,
    STYLE_SECONDARY,
    action_row,
    build_embed,
    button,
    error_payload,
    render_relay_content,
)
from callrelay.call.state import (
    MISSED,
    NUMBER_LOST,
    AtAndBy,
    CallSide,
    CallSnapshot,
    CallState,
    Endpoint,
    HoldState,
    RelayRecord,
    utcnow,
)
from callrelay.platform.base import TransportError
from callrelay.platform.payload import MessagePayload
from callrelay.shard.base import ShardInvocationError
from callrelay.utils.logging import LoggerMixin, call_id_var
from callrelay.utils.numbers import is_valid_number, normalize_target

if TYPE_CHECKING:
    from callrelay.call.manager import CallManager


# Fields a peer shard may overwrite through apply_update
UPDATABLE_FIELDS = frozenset({"hold", "picked_up"})


class CallSession(LoggerMixin):
    """
    One call between a caller and a callee.

    Every shard owning one of the two channels holds its own copy. The
    primary copy lives on the caller's shard. Changes are applied locally
    first, then written to the store, then pushed to the peer shard.
    """

    def __init__(
        self,
        manager: "CallManager",
        from_number: str,
        to_number: str,
        started_by: str,
        random_call: bool = False,
        call_id: Optional[str] = None,
    ):
        self.manager = manager
        self.services = manager.services
        self.id = call_id or str(uuid.uuid4())

        self.from_number = from_number
        self.to_number = to_number
        self.from_side: Optional[Endpoint] = None
        self.to_side: Optional[Endpoint] = None

        self.random_call = random_call
        self.started = AtAndBy(at=utcnow(), by=started_by)
        self.picked_up: Optional[AtAndBy] = None
        self.ended: Optional[AtAndBy] = None
        self.hold = HoldState()
        self.active = True
        self.primary = False
        self.notification_message_id: Optional[str] = None

        # None when both channels live on this shard
        self.other_side_shard_id: Optional[int] = None

        # Source message id -> relay record
        self.message_cache: Dict[str, RelayRecord] = {}

        self._pickup_task: Optional[asyncio.Task] = None

    @classmethod
    def from_snapshot(cls, manager: "CallManager", snapshot: CallSnapshot, side: CallSide) -> "CallSession":
        session = cls(
            manager,
            from_number=snapshot.from_number,
            to_number=snapshot.to_number,
            started_by=snapshot.started.by,
            random_call=snapshot.random_call,
            call_id=snapshot.id,
        )
        session.started = snapshot.started
        session.picked_up = snapshot.picked_up
        session.ended = snapshot.ended
        session.hold = snapshot.hold
        session.active = snapshot.active
        session.notification_message_id = snapshot.notification_message_id
        session.from_side = snapshot.from_endpoint
        session.to_side = snapshot.to_endpoint
        session.primary = side == CallSide.FROM
        return session

    def to_snapshot(self) -> CallSnapshot:
        return CallSnapshot(
            id=self.id,
            from_number=self.from_number,
            to_number=self.to_number,
            started=self.started,
            from_endpoint=self.from_side,
            to_endpoint=self.to_side,
            random_call=self.random_call,
            picked_up=self.picked_up,
            ended=self.ended,
            hold=self.hold,
            active=self.active,
            notification_message_id=self.notification_message_id,
        )

    # Shortcuts

    @property
    def settings(self):
        return self.services.settings

    @property
    def transport(self):
        return self.services.transport

    @property
    def repository(self):
        return self.services.repository

    @property
    def coordinator(self):
        return self.services.coordinator

    @property
    def localizer(self):
        return self.services.localizer

    @property
    def state(self) -> CallState:
        if not self.active:
            return CallState.ENDED
        if self.picked_up:
            return CallState.CONNECTED
        if self.notification_message_id:
            return CallState.RINGING
        return CallState.DIALING

    @property
    def on_hold(self) -> bool:
        return self.hold.on_hold

    @property
    def owns_ringing_side(self) -> bool:
        """True when the callee's channel is served by this shard."""
        return not self.primary or self.other_side_shard_id is None

    def get_side(self, channel_id: str) -> Optional[Endpoint]:
        for side in (self.from_side, self.to_side):
            if side is not None and side.channel_id == channel_id:
                return side
        return None

    def get_other_side(self, channel_id: str) -> Optional[Endpoint]:
        if self.from_side is not None and self.from_side.channel_id == channel_id:
            return self.to_side
        if self.to_side is not None and self.to_side.channel_id == channel_id:
            return self.from_side
        return None

    def t(self, side: Optional[Endpoint], key: str, **params: Any) -> str:
        locale = side.locale if side else None
        return self.localizer.text_for(locale, key, **params)

    # Initiation

    async def initiate(self):
        """
        Validate both numbers, ring the callee and persist the call.

        Raises:
            CallValidationError: The call was rejected; nothing was created
            CallDeliveryError: The callee could not be notified; nothing was persisted
            CallCoordinationError: The callee's shard could not be told about the call
        """
        self.primary = True
        call_id_var.set(self.id)

        self.to_number = normalize_target(self.to_number, self.settings.alias_numbers)
        if not is_valid_number(self.to_number):
            raise CallValidationError("numberInvalid")
        if self.to_number == self.from_number:
            raise CallValidationError("callingSelf")

        # Claimed before the first await so a concurrent dial sees both numbers busy
        busy = self.manager.reserve_numbers(self.from_number, self.to_number)
        if busy is not None:
            raise CallValidationError("thisSideInCall" if busy == self.from_number else "otherSideInCall")
        try:
            await self._initiate()
        finally:
            self.manager.release_numbers(self.from_number, self.to_number)

    async def _initiate(self):
        lookups = await self.repository.fetch_numbers([self.from_number, self.to_number])
        now = utcnow()

        caller = lookups.get(self.from_number)
        if caller is None:
            raise CallValidationError("invalidFrom")
        if caller.endpoint.is_expired(now):
            raise CallValidationError("thisSideExpired")
        if caller.in_call:
            raise CallValidationError("thisSideInCall")

        callee = lookups.get(self.to_number)
        if callee is None:
            raise CallValidationError("otherSideNotFound")
        if callee.endpoint.is_expired(now):
            raise CallValidationError("otherSideExpired")
        if callee.endpoint.has_blocked(self.from_number):
            raise CallValidationError("otherSideBlockedYou")
        if callee.in_call:
            raise CallValidationError("otherSideInCall")

        self.from_side = caller.endpoint
        self.to_side = callee.endpoint

        shard_id = await self.coordinator.resolve_shard_for(self.to_side.channel_id)
        if shard_id is None:
            self.active = False
            await self._notify(self.from_side.channel_id, self.error_notice(self.from_side, "numberMissingChannel"), "notify_caller")
            raise CallDeliveryError("numberMissingChannel", call_id=self.id)
        self.other_side_shard_id = None if self.coordinator.is_local(shard_id) else shard_id

        try:
            self.notification_message_id = await self.transport.send_message(
                self.to_side.channel_id, self._incoming_call_payload(now)
            )
        except TransportError as e:
            self.log_error("deliver_incoming_call", e, call_id=self.id, to_number=self.to_number)
            self.active = False
            await self._notify(self.from_side.channel_id, self.error_notice(self.from_side, "couldntReachOtherSide"), "notify_caller")
            raise CallDeliveryError("couldntReachOtherSide", call_id=self.id) from e

        try:
            await self.repository.create_call(self.to_snapshot())
        except CallValidationError:
            # Another shard placed a call on one of these numbers meanwhile
            self.active = False
            await self._strip_notification_controls()
            raise
        self.manager.register(self)

        self.logger.info(
            "Call initiated",
            call_id=self.id,
            from_number=self.from_number,
            to_number=self.to_number,
            other_side_shard_id=self.other_side_shard_id,
        )

        if self.other_side_shard_id is None:
            self.arm_pickup_timer()
            return

        try:
            await self.coordinator.invoke_on_shard(
                self.other_side_shard_id,
                "register_call",
                {"call_id": self.id, "side": CallSide.TO.value},
            )
        except ShardInvocationError as e:
            self.log_error("register_call", e, call_id=self.id, shard_id=self.other_side_shard_id)
            await self._strip_notification_controls()
            await self.force_end()
            raise CallCoordinationError("couldntReachOtherSide", call_id=self.id) from e

    def _incoming_call_payload(self, now) -> MessagePayload:
        to_side = self.to_side
        content = None
        if to_side.number == self.settings.support_number and self.settings.support_role_id:
            content = f"<@&{self.settings.support_role_id}>"

        return MessagePayload(
            content=content,
            embeds=[build_embed(
                color=self.settings.colors.get("info"),
                title=self.t(to_side, "incomingCall.title"),
                description=self.t(
                    to_side,
                    "incomingCall.description",
                    number=self.from_side.caller_display(now),
                    call_id=self.id,
                ),
            )],
            components=[action_row(
                button("call-pickup", self.t(to_side, "pickup"), STYLE_PRIMARY, "📞"),
                button("call-hangup", self.t(to_side, "hangup"), STYLE_SECONDARY, "☎️"),
            )],
            allowed_mentions={"roles": [self.settings.support_role_id]} if content else None,
        )

    # Ringing

    def arm_pickup_timer(self, delay: Optional[float] = None):
        """Start the ring deadline; the call is missed when it runs out."""
        if self.picked_up or not self.active:
            return
        if delay is None:
            delay = self.settings.ring_timeout_seconds
        self.cancel_pickup_timer()
        self._pickup_task = asyncio.create_task(self._pickup_deadline(max(delay, 0)))

    def cancel_pickup_timer(self):
        task, self._pickup_task = self._pickup_task, None
        if task and not task.done():
            task.cancel()

    async def _pickup_deadline(self, delay: float):
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        self._pickup_task = None
        try:
            await self.expire_ring()
        except Exception as e:
            self.log_error("expire_ring", e, call_id=self.id)

    async def expire_ring(self):
        """Mark the call as missed if nobody picked it up."""
        if self.picked_up or not self.active:
            return
        if not self._claim_end(MISSED):
            return

        self.logger.info("Call missed", call_id=self.id, to_number=self.to_number)

        await self._strip_notification_controls()
        if self.to_side is not None:
            await self._notify(self.to_side.channel_id, MessagePayload(embeds=[build_embed(
                color=self.settings.colors.get("info"),
                title=self.t(self.to_side, "missedCall.toSide.title"),
                description=self.t(self.to_side, "missedCall.toSide.description"),
            )]), "notify_missed_call")

        if self.from_side is not None:
            await self._notify(self.from_side.channel_id, await self._missed_call_caller_payload(), "notify_missed_call")

        await self._complete_end()

    async def _missed_call_caller_payload(self) -> MessagePayload:
        embed = build_embed(
            color=self.settings.colors.get("info"),
            title=self.t(self.from_side, "missedCall.fromSide.title"),
            description=self.t(self.from_side, "missedCall.fromSide.description"),
        )
        components = []

        try:
            mailbox = await self.repository.get_mailbox(self.to_number)
        except SQLAlchemyError as e:
            self.log_error("get_mailbox", e, call_id=self.id, number=self.to_number)
            mailbox = None

        if mailbox is not None:
            full = mailbox.message_count >= self.settings.mailbox_limit
            value = mailbox.autoreply or "-"
            if full:
                value = f"{value} {self.t(self.from_side, 'mailboxFull')}"
            embed["fields"] = [{"name": self.t(self.from_side, "answeringMachine"), "value": value}]

            if mailbox.receiving and not full:
                components.append(action_row(button(
                    f"mailbox-send-initiate-{self.to_number}",
                    self.t(self.from_side, "sendMessage"),
                    STYLE_PRIMARY,
                    "✉️",
                )))

        return MessagePayload(embeds=[embed], components=components or None)

    # Call controls

    async def pickup(self, interaction: Interaction):
        """
        Answer the call from the callee's channel.

        Picking up an already answered call does nothing.
        """
        if not self.active or self.picked_up:
            return
        if self.to_side is None or interaction.channel_id != self.to_side.channel_id:
            raise CallPermissionError("cantPickupOwnCall", call_id=self.id)

        self.picked_up = AtAndBy(at=utcnow(), by=interaction.user_id)
        self.cancel_pickup_timer()

        self.logger.info("Call picked up", call_id=self.id, picked_up_by=interaction.user_id)

        await self._persist("save_pickup", self.repository.save_pickup(self.id, self.picked_up))
        if not await self._propagate("apply_pickup", {"picked_up": self.picked_up.to_dict()}):
            return

        await self._strip_notification_controls(interaction.message_id)
        await self._notify(self.to_side.channel_id, MessagePayload(embeds=[build_embed(
            color=self.settings.colors.get("success"),
            title=self.t(self.to_side, "pickedUp.toSide.title"),
            description=self.t(self.to_side, "pickedUp.toSide.description", call_id=self.id),
        )]), "notify_pickup")

        if self.from_side is not None:
            await self._notify_picked_up_caller()

    async def _notify_picked_up_caller(self):
        await self._notify(self.from_side.channel_id, MessagePayload(embeds=[build_embed(
            color=self.settings.colors.get("success"),
            title=self.t(self.from_side, "pickedUp.fromSide.title"),
            description=self.t(self.from_side, "pickedUp.fromSide.description", call_id=self.id),
        )]), "notify_pickup")

    async def toggle_hold(self, interaction: Interaction):
        """
        Put the call on hold, or release a hold this side placed.

        Raises:
            CallPermissionError: The call is not connected, or the other side holds it
        """
        this_side = self.get_side(interaction.channel_id)
        if this_side is None:
            raise CallPermissionError("notInCall", call_id=self.id)
        if not self.picked_up:
            raise CallPermissionError("holdNotPickedUp", call_id=self.id)

        if self.hold.on_hold and self.hold.holding_side != this_side.channel_id:
            raise CallPermissionError("holdNotYours", call_id=self.id)

        if self.hold.on_hold:
            self.hold = HoldState()
            title_key, this_key, other_key = "hold.resumed.title", "hold.thisSide.released", "hold.otherSide.released"
        else:
            self.hold = HoldState(on_hold=True, holding_side=this_side.channel_id)
            title_key, this_key, other_key = "hold.held.title", "hold.thisSide.held", "hold.otherSide.held"

        self.logger.info("Call hold changed", call_id=self.id, on_hold=self.hold.on_hold)

        await self._persist("save_hold", self.repository.save_hold(self.id, self.hold))
        if not await self._propagate("apply_update", {"fields": {"hold": self.hold.to_dict()}}):
            return

        await self._notify(this_side.channel_id, self._hold_payload(this_side, title_key, this_key), "notify_hold")
        other_side = self.get_other_side(this_side.channel_id)
        if other_side is not None:
            await self._notify(other_side.channel_id, self._hold_payload(other_side, title_key, other_key), "notify_hold")

    def _hold_payload(self, side: Endpoint, title_key: str, description_key: str) -> MessagePayload:
        return MessagePayload(embeds=[build_embed(
            color=self.settings.colors.get("info"),
            title=self.t(side, title_key),
            description=self.t(side, description_key),
        )])

    async def hangup(self, interaction: Interaction):
        """End the call from either side. Hanging up twice does nothing."""
        this_side = self.get_side(interaction.channel_id)
        if this_side is None:
            raise CallPermissionError("notInCall", call_id=self.id)
        other_side = self.get_other_side(interaction.channel_id)
        picked_up = self.picked_up is not None

        if not self._claim_end(interaction.user_id):
            return

        since = self.picked_up.at if picked_up else self.started.at
        seconds = (self.ended.at - since).total_seconds()
        variant = "pickedUp" if picked_up else "notPickedUp"

        self.logger.info("Call hung up", call_id=self.id, ended_by=interaction.user_id, picked_up=picked_up)

        if not picked_up:
            await self._strip_notification_controls()

        await self._notify(this_side.channel_id, self._hangup_payload(this_side, f"hangup.{variant}.thisSide", seconds), "notify_hangup")
        if other_side is not None:
            await self._notify(other_side.channel_id, self._hangup_payload(other_side, f"hangup.{variant}.otherSide", seconds), "notify_hangup")

        await self._complete_end()

    def _hangup_payload(self, side: Endpoint, key: str, seconds: float) -> MessagePayload:
        return MessagePayload(embeds=[build_embed(
            color=self.settings.colors.get("info"),
            title=self.t(side, "hangup.title"),
            description=self.t(
                side,
                key,
                time=self.localizer.format_duration(side.locale, seconds),
                call_id=self.id,
            ),
        )])

    # Message relay

    async def message_create(self, message: InboundMessage):
        """Copy a message to the other side of the call."""
        if not self.active or not self.picked_up:
            return
        if self.hold.on_hold and self.settings.suppress_relay_on_hold:
            return
        destination = self.get_other_side(message.channel_id)
        if destination is None:
            return

        level = await self.services.permissions.get_permission_level(message.author_id)
        payload = render_relay_content(message, destination, level, self.settings, self.localizer)

        try:
            forwarded_id = await self.transport.send_message(destination.channel_id, payload)
        except TransportError as e:
            self.log_error("relay_message", e, call_id=self.id, message_id=message.id)
            await self.force_end()
            return

        record = RelayRecord(
            original_message_id=message.id,
            forwarded_message_id=forwarded_id,
            sender=message.author_id,
            sent_at=utcnow(),
        )
        self.message_cache[message.id] = record
        await self._persist("add_message", self.repository.add_message(self.id, record))

        self.logger.debug(
            "Message relayed",
            call_id=self.id,
            message_id=message.id,
            forwarded_message_id=forwarded_id,
            content=message.content,
        )

    async def message_update(self, message: InboundMessage):
        """Mirror an edit onto the relayed copy, or re-send it as a reply."""
        if not self.active or not self.picked_up:
            return
        record = self.message_cache.get(message.id)
        if record is None:
            return
        destination = self.get_other_side(message.channel_id)
        if destination is None:
            self.logger.info("Edited message is not from a call channel", call_id=self.id, message_id=message.id)
            return

        level = await self.services.permissions.get_permission_level(message.author_id)
        payload = render_relay_content(message, destination, level, self.settings, self.localizer)

        try:
            await self.transport.edit_message(destination.channel_id, record.forwarded_message_id, payload)
            return
        except TransportError as e:
            self.logger.info("Could not edit relayed message, re-sending", call_id=self.id, error=str(e))

        payload.content = f"{payload.content} (edited)"
        payload.reply_to = record.forwarded_message_id
        payload.fail_if_reference_missing = False
        try:
            await self.transport.send_message(destination.channel_id, payload)
        except TransportError as e:
            self.log_error("relay_edit", e, call_id=self.id, message_id=message.id)
            await self.force_end()

    async def message_delete(self, event: MessageDeleted):
        """Delete the relayed copy of a deleted message."""
        if not self.picked_up:
            return
        record = self.message_cache.pop(event.id, None)
        if record is None:
            return
        this_side = self.get_side(event.channel_id)
        destination = self.get_other_side(event.channel_id)
        if destination is None:
            return

        try:
            await self.transport.delete_message(destination.channel_id, record.forwarded_message_id)
            return
        except TransportError as e:
            self.logger.info("Could not delete relayed message", call_id=self.id, error=str(e))

        await self._notify(destination.channel_id, MessagePayload(
            content=self.t(this_side, "errors.messageDeleted"),
            reply_to=record.forwarded_message_id,
            fail_if_reference_missing=False,
        ), "notify_message_deleted")

    async def typing_start(self, event: TypingStarted):
        if not self.active or not self.picked_up or self.hold.on_hold:
            return
        destination = self.get_other_side(event.channel_id)
        if destination is None:
            return
        try:
            await self.transport.post_typing(destination.channel_id)
        except TransportError as e:
            self.logger.debug("Typing indicator not relayed", call_id=self.id, error=str(e))

    # Updates from the peer shard

    def apply_pickup(self, picked_up: Dict[str, Any]):
        if not self.active or self.picked_up:
            return
        self.picked_up = AtAndBy.from_dict(picked_up)
        self.cancel_pickup_timer()

    def apply_update(self, fields: Dict[str, Any]):
        """
        Overwrite fields with values from the peer shard.

        Raises:
            ValueError: An unknown field or an invalid hold was given
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown call fields: {', '.join(sorted(unknown))}")

        if "hold" in fields:
            hold = HoldState.from_dict(fields["hold"])
            if hold.on_hold and self.get_side(hold.holding_side or "") is None:
                raise ValueError("Holding side is not part of this call")
            self.hold = hold if hold.on_hold else HoldState()

        if "picked_up" in fields and fields["picked_up"]:
            self.apply_pickup(fields["picked_up"])

    # Termination

    def _claim_end(self, ended_by: str) -> bool:
        """Mark the call ended; False when it already was."""
        if self.ended is not None:
            return False
        self.active = False
        self.ended = AtAndBy(at=utcnow(), by=ended_by)
        self.cancel_pickup_timer()
        self.manager.unregister(self.id)
        return True

    async def _complete_end(self, propagate: bool = True, persist: bool = True):
        if persist:
            await self._persist("end_call", self.repository.end_call(self.id, self.ended))

        if propagate and self.other_side_shard_id is not None:
            try:
                await self.coordinator.invoke_on_shard(
                    self.other_side_shard_id,
                    "call_ended",
                    {"call_id": self.id, "ended_by": self.ended.by},
                )
            except ShardInvocationError as e:
                self.logger.warning(
                    "Peer shard not told about call end",
                    call_id=self.id,
                    shard_id=self.other_side_shard_id,
                    error=str(e),
                )

        self.logger.info(
            "Call ended",
            call_id=self.id,
            ended_by=self.ended.by,
            duration_seconds=(self.ended.at - self.started.at).total_seconds(),
            relayed_messages=len(self.message_cache),
        )

    async def end(self, ended_by: str = NUMBER_LOST, propagate: bool = True, persist: bool = True) -> bool:
        """
        End the call without user-facing notices.

        Returns:
            True if this call ended it, False if it had already ended
        """
        if not self._claim_end(ended_by):
            return False
        await self._complete_end(propagate=propagate, persist=persist)
        return True

    async def force_end(self, ended_by: str = NUMBER_LOST) -> bool:
        """End the call after a delivery failure and tell whoever is still reachable."""
        if not self._claim_end(ended_by):
            return False

        self.logger.warning("Call force-ended", call_id=self.id, ended_by=ended_by)
        for side in (self.from_side, self.to_side):
            if side is None:
                continue
            await self._notify(side.channel_id, MessagePayload(embeds=[build_embed(
                color=self.settings.colors.get("error"),
                title=self.t(side, "numberLost.title"),
                description=self.t(side, "numberLost.description", call_id=self.id),
            )]), "notify_number_lost")

        await self._complete_end()
        return True

    # Helpers

    async def _propagate(self, procedure: str, context: Dict[str, Any]) -> bool:
        """Push a change to the peer shard. A failure ends the call."""
        if self.other_side_shard_id is None:
            return True
        try:
            await self.coordinator.invoke_on_shard(
                self.other_side_shard_id, procedure, {"call_id": self.id, **context}
            )
            return True
        except ShardInvocationError as e:
            self.log_error(procedure, e, call_id=self.id, shard_id=self.other_side_shard_id)
            await self.force_end()
            return False

    async def _persist(self, operation: str, write) -> None:
        try:
            await write
        except SQLAlchemyError as e:
            self.log_error(operation, e, call_id=self.id)

    async def _notify(self, channel_id: str, payload: MessagePayload, operation: str = "notify") -> Optional[str]:
        try:
            return await self.transport.send_message(channel_id, payload)
        except TransportError as e:
            self.log_error(operation, e, call_id=self.id, channel_id=channel_id)
            return None

    async def _strip_notification_controls(self, message_id: Optional[str] = None):
        """Remove the pickup/hangup buttons from the incoming call notice."""
        message_id = message_id or self.notification_message_id
        if not message_id or self.to_side is None:
            return
        try:
            await self.transport.edit_message(self.to_side.channel_id, message_id, MessagePayload(components=[]))
        except TransportError as e:
            self.logger.debug("Could not remove call buttons", call_id=self.id, error=str(e))

    def error_notice(self, side: Endpoint, key: str, **params: Any) -> MessagePayload:
        """Error notice in the side's locale."""
        return error_payload(self.localizer, side.locale, key, self.settings, **params)

    def get_metrics(self) -> Dict[str, Any]:
        """Get current session metrics."""
        duration = ((self.ended.at if self.ended else utcnow()) - self.started.at).total_seconds()

        return {
            "call_id": self.id,
            "state": self.state.value,
            "from_number": self.from_number,
            "to_number": self.to_number,
            "primary": self.primary,
            "other_side_shard_id": self.other_side_shard_id,
            "duration_seconds": duration,
            "picked_up": self.picked_up.to_dict() if self.picked_up else None,
            "ended": self.ended.to_dict() if self.ended else None,
            "hold": self.hold.to_dict(),
            "relayed_messages": len(self.message_cache),
            "is_active": self.active,
        }
