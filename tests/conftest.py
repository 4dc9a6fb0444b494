import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from functools import partial
from types import SimpleNamespace

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from quizroom.core import utils
from quizroom.core.scheduler import scheduler
from quizroom.db.base_class import Base
from quizroom.models import Question, Quiz, Room, User
from quizroom.services import store
from quizroom.services.engine import run_question_timeout


class FakeClock:
    """Millisecond wall clock the tests move by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(utils, "now_ms", fake)
    return fake


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
async def timeout_scheduler(session_factory):
    scheduler.configure(partial(run_question_timeout, session_factory))
    yield scheduler
    await scheduler.shutdown()


async def add_user(db, username: str) -> int:
    user = User(username=username, email=f"{username.lower()}@example.com")
    db.add(user)
    await db.commit()
    return user.id


async def add_quiz(db, owner_id: int, correct: list[int], title: str = "Photosynthesis") -> int:
    quiz = Quiz(
        title=title,
        description="Light reactions and the Calvin cycle",
        created_by_id=owner_id,
        questions=[
            Question(
                text=f"Question {i + 1}?",
                options=["A", "B", "C", "D"],
                correct_option_index=correct_index,
                explanation=f"Because option {correct_index}",
                difficulty="easy",
                question_type="multiple_choice",
                order=i,
            )
            for i, correct_index in enumerate(correct)
        ],
    )
    db.add(quiz)
    await db.commit()
    return quiz.id


@pytest.fixture
async def users(db):
    return SimpleNamespace(
        alice=await add_user(db, "Alice"),
        bob=await add_user(db, "Bob"),
        carol=await add_user(db, "Carol"),
    )


@pytest.fixture
async def quiz_id(db, users):
    """Two questions; the correct option is 1 for both."""
    return await add_quiz(db, users.alice, correct=[1, 1])


async def fetch_room(db, room_id: int) -> Room:
    return await store.load_room_for_update(db, room_id)


async def fetch_players(db, room_id: int):
    return {p.user_id: p for p in await store.list_players(db, room_id)}


@pytest.fixture
async def waiting_room(db, users, quiz_id, clock):
    """Alice hosts, Bob joined one second later."""
    from quizroom.services import rooms

    room = await rooms.create_room(db, quiz_id, users.alice)
    room = SimpleNamespace(id=room.id, code=room.code)
    clock.advance(1000)
    await rooms.join_room(db, room.code, users.bob)
    return room


@pytest.fixture
async def active_room(db, users, waiting_room, clock):
    from quizroom.services import rooms

    clock.advance(1000)
    await rooms.start_room(db, waiting_room.id, users.alice)
    return waiting_room


class MockWebSocket:
    """Stands in for a starlette WebSocket in the connection manager."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)
