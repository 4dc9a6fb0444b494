import random
import string
import time
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from quizroom.core.config import settings
from quizroom.models.room import Room

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def normalize_room_code(code: str) -> str:
    return code.strip().upper()


def generate_room_code(length: int = None) -> str:
    """Generate a random uppercase alphanumeric room code."""
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length or settings.ROOM_CODE_LENGTH))


async def room_code_taken(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(Room.id).where(Room.code == code))
    return result.scalar_one_or_none() is not None
