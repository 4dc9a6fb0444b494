import asyncio

import pytest
from sqlalchemy import select

from conftest import fetch_players, fetch_room
from quizroom.core.config import settings
from quizroom.core.errors import AlreadyAnswered, InvalidState, NotAMember, NotFound, StaleSubmission
from quizroom.models import Player, PlayerAnswer, QuestionTimeout, RoomStatus
from quizroom.services import engine, rooms
from quizroom.services.engine import AdvanceOutcome


async def answers_of(db, room_id: int, user_id: int):
    result = await db.execute(
        select(PlayerAnswer)
        .join(Player, Player.id == PlayerAnswer.player_id)
        .where(Player.room_id == room_id, Player.user_id == user_id)
        .order_by(PlayerAnswer.question_index)
    )
    return result.scalars().all()


async def test_everyone_answering_advances_without_waiting(db, users, active_room, clock, timeout_scheduler):
    started_at = clock.now
    clock.advance(2000)
    first = await engine.submit_answer(db, active_room.id, 0, 1, 2000, users.alice)
    clock.advance(1500)
    second = await engine.submit_answer(db, active_room.id, 0, 1, 3500, users.bob)

    assert first.outcome == AdvanceOutcome.NO_ACTION_WAITING
    assert second.outcome == AdvanceOutcome.ADVANCED
    assert first.is_correct and first.score_earned == settings.CORRECT_ANSWER_POINTS

    room = await fetch_room(db, active_room.id)
    assert room.current_question_index == 1
    assert room.current_question_started_at == started_at + 3500

    players = await fetch_players(db, active_room.id)
    assert players[users.alice].score == 10
    assert players[users.bob].score == 10
    assert not any(p.has_answered_current_question for p in players.values())

    assert timeout_scheduler.is_armed(active_room.id, 1)
    job = await db.get(QuestionTimeout, active_room.id)
    assert (job.question_index, job.fire_at) == (1, clock.now + settings.QUESTION_TIMEOUT_MS)


async def test_timeout_advances_with_missing_answers(db, users, active_room, clock):
    await engine.submit_answer(db, active_room.id, 0, 1, 900, users.alice)

    clock.advance(settings.QUESTION_TIMEOUT_MS)
    outcome = await engine.handle_question_timeout(db, active_room.id, 0)

    assert outcome == AdvanceOutcome.ADVANCED
    room = await fetch_room(db, active_room.id)
    assert room.current_question_index == 1

    players = await fetch_players(db, active_room.id)
    assert players[users.bob].score == 0
    assert players[users.bob].has_answered_current_question is False
    assert await answers_of(db, active_room.id, users.bob) == []
    assert [a.question_index for a in await answers_of(db, active_room.id, users.alice)] == [0]


async def test_last_question_answered_finishes_room(db, users, active_room, clock, timeout_scheduler):
    for index in range(2):
        await engine.submit_answer(db, active_room.id, index, 1, 400, users.alice)
        result = await engine.submit_answer(db, active_room.id, index, 0, 600, users.bob)

    assert result.outcome == AdvanceOutcome.FINISHED
    room = await fetch_room(db, active_room.id)
    assert room.status == RoomStatus.FINISHED
    assert room.current_question_started_at is None
    assert await db.get(QuestionTimeout, active_room.id) is None

    clock.advance(settings.QUESTION_TIMEOUT_MS)
    assert await engine.handle_question_timeout(db, active_room.id, 1) is None
    room = await fetch_room(db, active_room.id)
    assert room.status == RoomStatus.FINISHED
    assert room.current_question_index == 1


async def test_answer_for_previous_question_is_stale(db, users, active_room):
    await engine.submit_answer(db, active_room.id, 0, 1, 400, users.alice)
    await engine.submit_answer(db, active_room.id, 0, 1, 400, users.bob)

    with pytest.raises(StaleSubmission):
        await engine.submit_answer(db, active_room.id, 0, 1, 400, users.alice)

    players = await fetch_players(db, active_room.id)
    assert players[users.alice].score == 10
    assert players[users.alice].has_answered_current_question is False


async def test_second_answer_is_rejected_without_changes(db, users, active_room):
    await engine.submit_answer(db, active_room.id, 0, 0, 400, users.alice)

    with pytest.raises(AlreadyAnswered):
        await engine.submit_answer(db, active_room.id, 0, 1, 500, users.alice)

    players = await fetch_players(db, active_room.id)
    assert players[users.alice].score == 0
    answers = await answers_of(db, active_room.id, users.alice)
    assert [(a.selected_index, a.is_correct) for a in answers] == [(0, False)]


async def test_wrong_answer_scores_nothing(db, users, active_room):
    result = await engine.submit_answer(db, active_room.id, 0, 3, 400, users.bob)

    assert result.is_correct is False
    assert result.score_earned == 0
    players = await fetch_players(db, active_room.id)
    assert players[users.bob].score == 0
    assert players[users.bob].has_answered_current_question is True


async def test_answer_before_start(db, users, waiting_room):
    with pytest.raises(InvalidState):
        await engine.submit_answer(db, waiting_room.id, 0, 1, 400, users.alice)


async def test_answer_from_non_member(db, users, active_room):
    with pytest.raises(NotAMember):
        await engine.submit_answer(db, active_room.id, 0, 1, 400, users.carol)


async def test_answer_for_missing_room(db, users):
    with pytest.raises(NotFound):
        await engine.submit_answer(db, 31337, 0, 1, 400, users.alice)


async def test_advance_is_a_no_op_while_waiting_for_answers(db, users, active_room, clock):
    clock.advance(settings.QUESTION_TIMEOUT_MS - 1)
    assert await engine.advance_to_next_question_or_finish(db, active_room.id) == AdvanceOutcome.NO_ACTION_WAITING

    room = await fetch_room(db, active_room.id)
    assert room.current_question_index == 0


async def test_advance_on_waiting_room(db, waiting_room):
    assert await engine.advance_to_next_question_or_finish(db, waiting_room.id) == \
        AdvanceOutcome.NO_ACTION_QUIZ_NOT_ACTIVE


async def test_advance_after_timeout_walks_to_finish(db, active_room, clock):
    clock.advance(settings.QUESTION_TIMEOUT_MS)
    assert await engine.advance_to_next_question_or_finish(db, active_room.id) == AdvanceOutcome.ADVANCED
    assert await engine.advance_to_next_question_or_finish(db, active_room.id) == AdvanceOutcome.NO_ACTION_WAITING

    clock.advance(settings.QUESTION_TIMEOUT_MS)
    assert await engine.advance_to_next_question_or_finish(db, active_room.id) == AdvanceOutcome.FINISHED
    assert await engine.advance_to_next_question_or_finish(db, active_room.id) == \
        AdvanceOutcome.NO_ACTION_QUIZ_NOT_ACTIVE


async def test_concurrent_final_answers_advance_once(session_factory, users, active_room):
    async def answer(user_id):
        async with session_factory() as session:
            return await engine.submit_answer(session, active_room.id, 0, 1, 700, user_id)

    results = await asyncio.gather(answer(users.alice), answer(users.bob))

    outcomes = sorted(r.outcome.value for r in results)
    assert outcomes == [AdvanceOutcome.ADVANCED.value, AdvanceOutcome.NO_ACTION_WAITING.value]
    async with session_factory() as session:
        room = await fetch_room(session, active_room.id)
        assert room.current_question_index == 1


async def test_concurrent_advance_after_timeout_moves_one_question(session_factory, active_room, clock):
    clock.advance(settings.QUESTION_TIMEOUT_MS)

    async def advance():
        async with session_factory() as session:
            return await engine.advance_to_next_question_or_finish(session, active_room.id)

    async def timeout():
        async with session_factory() as session:
            return await engine.handle_question_timeout(session, active_room.id, 0)

    outcomes = await asyncio.gather(advance(), advance(), timeout())

    assert outcomes.count(AdvanceOutcome.ADVANCED) == 1
    async with session_factory() as session:
        room = await fetch_room(session, active_room.id)
        assert room.current_question_index == 1


async def test_early_timeout_rearms_for_the_remainder(db, active_room, clock, timeout_scheduler):
    started_at = clock.now
    clock.advance(5000)

    outcome = await engine.handle_question_timeout(db, active_room.id, 0)

    assert outcome == AdvanceOutcome.NO_ACTION_WAITING
    assert timeout_scheduler.is_armed(active_room.id, 0)
    job = await db.get(QuestionTimeout, active_room.id)
    assert job.fire_at == started_at + settings.QUESTION_TIMEOUT_MS
    room = await fetch_room(db, active_room.id)
    assert room.current_question_index == 0


async def test_stale_timeout_leaves_newer_job_alone(db, users, active_room, clock):
    await engine.submit_answer(db, active_room.id, 0, 1, 400, users.alice)
    await engine.submit_answer(db, active_room.id, 0, 1, 400, users.bob)

    assert await engine.handle_question_timeout(db, active_room.id, 0) is None

    job = await db.get(QuestionTimeout, active_room.id)
    assert job is not None
    assert job.question_index == 1


async def test_status_only_moves_forward(db, users, active_room, clock):
    seen = [RoomStatus.WAITING]
    for _ in range(4):
        clock.advance(settings.QUESTION_TIMEOUT_MS)
        await engine.advance_to_next_question_or_finish(db, active_room.id)
        seen.append((await fetch_room(db, active_room.id)).status)

    order = [RoomStatus.WAITING, RoomStatus.ACTIVE, RoomStatus.FINISHED]
    ranks = [order.index(status) for status in seen]
    assert ranks == sorted(ranks)
    assert seen[-1] == RoomStatus.FINISHED

    with pytest.raises(InvalidState):
        await rooms.start_room(db, active_room.id, users.alice)
