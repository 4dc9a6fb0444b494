"""Room lifecycle: create, join, start, leave, delete."""
import enum
import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.core import utils
from quizroom.core.config import settings
from quizroom.core.errors import Forbidden, InvalidState, NotAMember, NotFound, RoomClosed, RoomCodeUnavailable
from quizroom.core.scheduler import save_job
from quizroom.models.player import Player
from quizroom.models.quiz import Quiz
from quizroom.models.room import Room, RoomStatus
from quizroom.services import engine, store

logger = logging.getLogger(__name__)


class LeaveOutcome(str, enum.Enum):
    NOT_IN_ROOM = "not_in_room"
    ROOM_DELETED = "room_deleted"
    HOST_PROMOTED = "host_promoted"
    LEFT = "left"


@dataclass
class LeaveResult:
    outcome: LeaveOutcome
    room: Room
    new_host_id: Optional[int] = None
    advance: Optional[engine.AdvanceOutcome] = None


def is_room_code_collision(exc: IntegrityError) -> bool:
    """True when the violated constraint is the unique index on ``rooms.code``."""
    # sqlite: "UNIQUE constraint failed: rooms.code"; mysql: "Duplicate entry ... for key 'ix_rooms_code'"
    message = str(exc.orig)
    return "rooms.code" in message or "ix_rooms_code" in message


def _new_player(room_id: int, user_id: int, is_host: bool) -> Player:
    return Player(
        room_id=room_id,
        user_id=user_id,
        is_host=is_host,
        joined_at=utils.now_ms(),
        score=0,
        has_answered_current_question=False,
    )


async def create_room(db: AsyncSession, quiz_id: int, user_id: int) -> Room:
    """Open a waiting room for a quiz with the caller as host."""
    quiz = await db.get(Quiz, quiz_id)
    if not quiz:
        raise NotFound(f"Quiz with ID {quiz_id} does not exist", field="quizId")

    for attempt in range(1, settings.ROOM_CODE_MAX_ATTEMPTS + 1):
        code = utils.generate_room_code()
        if await utils.room_code_taken(db, code):
            continue

        room = Room(
            code=code,
            quiz_id=quiz_id,
            host_id=user_id,
            status=RoomStatus.WAITING,
            current_question_index=-1,
        )
        db.add(room)
        try:
            await db.flush()
        except IntegrityError as e:
            await db.rollback()
            if not is_room_code_collision(e):
                raise
            # Lost a race for the same code against a concurrent insert
            logger.warning(f"Room code {code} collided on insert (attempt {attempt})")
            continue

        db.add(_new_player(room.id, user_id, is_host=True))
        await db.commit()
        logger.info(f"Room {room.code} created for quiz {quiz_id} by user {user_id}")
        return room

    logger.error(f"No free room code after {settings.ROOM_CODE_MAX_ATTEMPTS} attempts")
    raise RoomCodeUnavailable("Could not allocate a room code. Please try again.")


async def join_room(db: AsyncSession, code: str, user_id: int) -> tuple[Room, bool]:
    """Join a waiting room by code. Returns the room and whether the caller was already in it."""
    room = await store.get_room_by_code(db, code)
    if not room:
        raise NotFound("Room not found. Please check the code and try again.", field="code")

    async with store.locked_room(db, room.id) as room:
        if not room:
            raise NotFound("Room not found. Please check the code and try again.", field="code")

        if room.status != RoomStatus.WAITING:
            raise RoomClosed("This room is no longer accepting new players.")

        existing = await store.get_player(db, room.id, user_id)
        if not existing:
            db.add(_new_player(room.id, user_id, is_host=False))

    if not existing:
        logger.info(f"User {user_id} joined room {room.code}")
    return room, existing is not None


async def start_room(db: AsyncSession, room_id: int, user_id: int) -> Room:
    async with store.locked_room(db, room_id) as room:
        if not room:
            raise NotFound("Room not found.", field="room_id")

        if room.host_id != user_id:
            raise Forbidden("Only the host can start the quiz.")

        if room.status != RoomStatus.WAITING:
            raise InvalidState("The quiz cannot be started. It may already be active or finished.")

        started_at = utils.now_ms()
        room.status = RoomStatus.ACTIVE
        room.current_question_index = 0
        room.current_question_started_at = started_at
        await store.reset_answered_flags(db, room.id)
        await save_job(db, room.id, 0, started_at + settings.QUESTION_TIMEOUT_MS)

    engine.arm_question_timeout(room.id, 0, started_at + settings.QUESTION_TIMEOUT_MS)
    logger.info(f"Room {room.code} started by host {user_id}")
    return room


async def leave_room(db: AsyncSession, room_id: int, user_id: int) -> LeaveResult:
    """Remove the caller from a room.

    Exactly one of: the room is deleted (last player left), the host role
    passes to the earliest remaining joiner, or nothing further happens.
    A departure during play may complete the set of answers, so advancement
    is re-evaluated for the remaining players.
    """
    async with store.locked_room(db, room_id) as room:
        if not room:
            raise NotFound("Room not found.", field="room_id")

        player = await store.get_player(db, room.id, user_id)
        if not player:
            return LeaveResult(outcome=LeaveOutcome.NOT_IN_ROOM, room=room)

        was_host = player.is_host
        await store.delete_player(db, player)
        remaining = await store.list_players(db, room.id)

        if not remaining:
            await store.purge_room(db, room.id)
            result = LeaveResult(outcome=LeaveOutcome.ROOM_DELETED, room=room)
        elif was_host:
            new_host = remaining[0]
            new_host.is_host = True
            room.host_id = new_host.user_id
            result = LeaveResult(outcome=LeaveOutcome.HOST_PROMOTED, room=room, new_host_id=new_host.user_id)
        else:
            result = LeaveResult(outcome=LeaveOutcome.LEFT, room=room)

        if result.outcome != LeaveOutcome.ROOM_DELETED and room.status == RoomStatus.ACTIVE:
            result.advance = await engine.evaluate_advancement(db, room)

    if result.advance is not None:
        engine.arm_next_timeout(room, result.advance)
    logger.info(f"User {user_id} left room {room.code}: {result.outcome.value}")
    return result


async def delete_room(db: AsyncSession, room_id: int, user_id: int) -> str:
    """Host-only teardown. Returns the code of the deleted room.

    A timeout already armed for the room is left to fire; it finds no room
    and does nothing.
    """
    async with store.locked_room(db, room_id) as room:
        if not room:
            raise NotFound("Room not found.", field="room_id")

        if room.host_id != user_id:
            raise Forbidden("Only the host can delete the room.")

        code = room.code
        await store.purge_room(db, room.id)

    logger.info(f"Room {code} deleted by host {user_id}")
    return code


async def set_signaling_id(db: AsyncSession, room_id: int, user_id: int, signaling_id: Optional[str]) -> Player:
    """Store the caller's peer-connection id; not used by the quiz itself."""
    async with store.locked_room(db, room_id) as room:
        if not room:
            raise NotFound("Room not found.", field="room_id")

        player = await store.get_player(db, room.id, user_id)
        if not player:
            raise NotAMember("Player not found in this room.")

        player.signaling_id = signaling_id

    return player
