"""Room and player store access shared by the room services."""
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional
from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.core import utils
from quizroom.core.locks import room_locks
from quizroom.models.player import Player, PlayerAnswer
from quizroom.models.question_timeout import QuestionTimeout
from quizroom.models.room import Room


async def load_room_for_update(db: AsyncSession, room_id: int) -> Optional[Room]:
    result = await db.execute(
        select(Room)
        .where(Room.id == room_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@asynccontextmanager
async def locked_room(db: AsyncSession, room_id: int) -> AsyncIterator[Optional[Room]]:
    """Run one read-decide-write cycle on a room as a single transaction.

    Yields the freshly read room (or None when it does not exist) while the
    room's in-process lock and database row lock are held. Commits when the
    block finishes, rolls back and re-raises when it fails.
    """
    # Reads made before the lock (e.g. the caller lookup) must not pin the snapshot
    if db.in_transaction():
        await db.commit()

    async with room_locks.hold(room_id):
        try:
            room = await load_room_for_update(db, room_id)
            yield room
        except Exception:
            await db.rollback()
            raise
        else:
            await db.commit()


async def get_room_by_code(db: AsyncSession, code: str) -> Optional[Room]:
    result = await db.execute(
        select(Room)
        .where(Room.code == utils.normalize_room_code(code))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_player(db: AsyncSession, room_id: int, user_id: int) -> Optional[Player]:
    result = await db.execute(
        select(Player)
        .where(Player.room_id == room_id, Player.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_players(db: AsyncSession, room_id: int) -> List[Player]:
    """Players of a room in join order; ties broken by insertion order."""
    result = await db.execute(
        select(Player)
        .where(Player.room_id == room_id)
        .order_by(Player.joined_at, Player.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def reset_answered_flags(db: AsyncSession, room_id: int):
    await db.execute(
        update(Player)
        .where(Player.room_id == room_id)
        .values(has_answered_current_question=False)
    )


async def delete_player(db: AsyncSession, player: Player):
    await db.execute(delete(PlayerAnswer).where(PlayerAnswer.player_id == player.id))
    await db.delete(player)
    await db.flush()


async def purge_room(db: AsyncSession, room_id: int):
    """Delete a room with its players, their answer logs and its pending timeout."""
    player_ids = select(Player.id).where(Player.room_id == room_id)
    await db.execute(
        delete(PlayerAnswer)
        .where(PlayerAnswer.player_id.in_(player_ids))
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(Player).where(Player.room_id == room_id))
    await db.execute(delete(QuestionTimeout).where(QuestionTimeout.room_id == room_id))
    await db.execute(delete(Room).where(Room.id == room_id))
