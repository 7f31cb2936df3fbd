"""
Call persistence: calls, relayed messages, numbers and mailboxes.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Sequence
from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from callrelay.call.errors import CallValidationError
from callrelay.call.state import AtAndBy, CallSnapshot, Endpoint, HoldState, RelayRecord
from callrelay.config import settings
from callrelay.models import Call, CallMessage, Mailbox, Number
from callrelay.models.database import get_session_factory
from callrelay.utils.logging import LoggerMixin


@dataclass
class NumberLookup:
    endpoint: Endpoint
    in_call: bool = False


@dataclass
class MailboxInfo:
    number: str
    autoreply: str
    receiving: bool
    message_count: int


class CallRepository(LoggerMixin):
    """Request/response access to the shared store."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self.session_factory = session_factory or get_session_factory()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                self.logger.error("Database session error", error=str(e))
                raise
            except Exception:
                await session.rollback()
                raise

    @staticmethod
    def _to_endpoint(row: Number) -> Endpoint:
        return Endpoint(
            number=row.number,
            channel_id=row.channel_id,
            guild_id=row.guild_id,
            locale=(row.guild.locale if row.guild else None) or settings.default_locale,
            expiry=row.expiry,
            blocked=list(row.blocked or []),
            vip_expiry=row.vip_expiry,
            vip_hidden=bool(row.vip_hidden),
            vip_name=row.vip_name,
        )

    def _to_snapshot(self, row: Call) -> CallSnapshot:
        picked_up = None
        if row.picked_up_by:
            picked_up = AtAndBy(at=row.picked_up_at, by=row.picked_up_by)
        ended = None
        if row.ended_by:
            ended = AtAndBy(at=row.ended_at, by=row.ended_by)

        return CallSnapshot(
            id=row.id,
            from_number=row.from_number,
            to_number=row.to_number,
            from_endpoint=self._to_endpoint(row.from_endpoint) if row.from_endpoint else None,
            to_endpoint=self._to_endpoint(row.to_endpoint) if row.to_endpoint else None,
            random_call=bool(row.random_call),
            started=AtAndBy(at=row.started_at, by=row.started_by),
            picked_up=picked_up,
            ended=ended,
            hold=HoldState(on_hold=bool(row.hold_on), holding_side=row.holding_side),
            active=bool(row.active),
            notification_message_id=row.notification_message_id,
        )

    # Numbers

    async def fetch_numbers(self, numbers: Sequence[str]) -> Dict[str, NumberLookup]:
        """Look up several numbers and whether each is already in a call."""
        async with self._session() as session:
            result = await session.execute(select(Number).where(Number.number.in_(list(numbers))))
            rows = result.scalars().unique().all()

            busy_result = await session.execute(
                select(Call.from_number, Call.to_number).where(
                    Call.active.is_(True),
                    or_(Call.from_number.in_(list(numbers)), Call.to_number.in_(list(numbers))),
                )
            )
            busy = set()
            for from_number, to_number in busy_result.all():
                busy.update((from_number, to_number))

        return {
            row.number: NumberLookup(endpoint=self._to_endpoint(row), in_call=row.number in busy)
            for row in rows
        }

    # Calls

    async def create_call(self, snapshot: CallSnapshot) -> None:
        """
        Store a new call.

        Raises:
            CallValidationError: Either number already has an active call
        """
        numbers = [snapshot.from_number, snapshot.to_number]
        async with self._session() as session:
            result = await session.execute(
                select(Call.from_number, Call.to_number).where(
                    Call.active.is_(True),
                    or_(Call.from_number.in_(numbers), Call.to_number.in_(numbers)),
                )
            )
            busy = set()
            for from_number, to_number in result.all():
                busy.update((from_number, to_number))
            if snapshot.from_number in busy:
                raise CallValidationError("thisSideInCall", call_id=snapshot.id)
            if snapshot.to_number in busy:
                raise CallValidationError("otherSideInCall", call_id=snapshot.id)

            session.add(Call(
                id=snapshot.id,
                from_number=snapshot.from_number,
                to_number=snapshot.to_number,
                random_call=snapshot.random_call,
                started_at=snapshot.started.at,
                started_by=snapshot.started.by,
                picked_up_at=snapshot.picked_up.at if snapshot.picked_up else None,
                picked_up_by=snapshot.picked_up.by if snapshot.picked_up else None,
                hold_on=snapshot.hold.on_hold,
                holding_side=snapshot.hold.holding_side,
                active=snapshot.active,
                notification_message_id=snapshot.notification_message_id,
            ))

    async def get_call(self, call_id: str) -> Optional[CallSnapshot]:
        async with self._session() as session:
            result = await session.execute(select(Call).where(Call.id == call_id))
            row = result.scalars().unique().one_or_none()
            return self._to_snapshot(row) if row else None

    async def get_call_record(self, call_id: str) -> Optional[Dict]:
        """The stored call with both endpoints, as plain data."""
        async with self._session() as session:
            result = await session.execute(select(Call).where(Call.id == call_id))
            row = result.scalars().unique().one_or_none()
            if row is None:
                return None
            record = row.to_dict()
            record["from_endpoint"] = row.from_endpoint.to_dict() if row.from_endpoint else None
            record["to_endpoint"] = row.to_endpoint.to_dict() if row.to_endpoint else None
            return record

    async def active_calls(self) -> List[CallSnapshot]:
        async with self._session() as session:
            result = await session.execute(select(Call).where(Call.active.is_(True)))
            return [self._to_snapshot(row) for row in result.scalars().unique().all()]

    async def save_pickup(self, call_id: str, picked_up: AtAndBy) -> None:
        async with self._session() as session:
            await session.execute(
                update(Call)
                .where(Call.id == call_id)
                .values(picked_up_at=picked_up.at, picked_up_by=picked_up.by)
            )

    async def save_hold(self, call_id: str, hold: HoldState) -> None:
        async with self._session() as session:
            await session.execute(
                update(Call)
                .where(Call.id == call_id)
                .values(hold_on=hold.on_hold, holding_side=hold.holding_side)
            )

    async def end_call(self, call_id: str, ended: AtAndBy) -> None:
        async with self._session() as session:
            await session.execute(
                update(Call)
                .where(Call.id == call_id)
                .values(active=False, ended_at=ended.at, ended_by=ended.by)
            )

    # Relayed messages

    async def add_message(self, call_id: str, record: RelayRecord) -> None:
        async with self._session() as session:
            session.add(CallMessage(
                call_id=call_id,
                original_message_id=record.original_message_id,
                forwarded_message_id=record.forwarded_message_id,
                sender=record.sender,
                sent_at=record.sent_at,
            ))

    async def messages_for_call(self, call_id: str) -> List[RelayRecord]:
        async with self._session() as session:
            result = await session.execute(
                select(CallMessage).where(CallMessage.call_id == call_id).order_by(CallMessage.id)
            )
            return [
                RelayRecord(
                    original_message_id=row.original_message_id,
                    forwarded_message_id=row.forwarded_message_id,
                    sender=row.sender,
                    sent_at=row.sent_at,
                )
                for row in result.scalars().all()
            ]

    async def count_messages(self, call_id: str) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count(CallMessage.id)).where(CallMessage.call_id == call_id)
            )
            return result.scalar() or 0

    # Mailboxes

    async def get_mailbox(self, number: str) -> Optional[MailboxInfo]:
        async with self._session() as session:
            row = await session.get(Mailbox, number)
            if not row:
                return None
            return MailboxInfo(
                number=row.number,
                autoreply=row.autoreply or "",
                receiving=bool(row.receiving),
                message_count=len(row.messages or []),
            )
