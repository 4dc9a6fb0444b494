"""Answer intake and question advancement.

Advancement is evaluated from two directions: synchronously by the
submission that completes the set of answers, and by the question's
scheduled timeout. Both go through ``evaluate_advancement`` while holding
the room lock, so only the first caller observes the advance condition for a
given question; later callers re-read the room and find it already moved on.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.core import utils
from quizroom.core.config import settings
from quizroom.core.errors import AlreadyAnswered, InvalidState, NotAMember, NotFound, StaleSubmission
from quizroom.core.scheduler import clear_job, save_job, scheduler
from quizroom.core.websocket import manager
from quizroom.models.player import PlayerAnswer
from quizroom.models.room import Room, RoomStatus
from quizroom.services import store

logger = logging.getLogger(__name__)


class AdvanceOutcome(str, enum.Enum):
    NO_ACTION_QUIZ_NOT_ACTIVE = "no_action_quiz_not_active"
    NO_ACTION_WAITING = "no_action_waiting"
    ADVANCED = "advanced"
    FINISHED = "finished"


@dataclass
class AnswerResult:
    is_correct: bool
    score_earned: int
    outcome: AdvanceOutcome


def arm_question_timeout(room_id: int, question_index: int, fire_at: int):
    """Start the in-memory timer of a job already stored with the transition."""
    scheduler.arm(room_id, question_index, max(fire_at - utils.now_ms(), 1))


async def evaluate_advancement(db: AsyncSession, room: Room) -> AdvanceOutcome:
    if room.status != RoomStatus.ACTIVE:
        return AdvanceOutcome.NO_ACTION_QUIZ_NOT_ACTIVE

    quiz = room.quiz
    if not quiz:
        raise NotFound("Quiz data not found for this room.")

    players = await store.list_players(db, room.id)
    all_answered = all(p.has_answered_current_question for p in players)
    now = utils.now_ms()
    timed_out = (
        room.current_question_started_at is not None
        and now >= room.current_question_started_at + settings.QUESTION_TIMEOUT_MS
    )

    if not all_answered and not timed_out:
        return AdvanceOutcome.NO_ACTION_WAITING

    next_index = room.current_question_index + 1
    if next_index < len(quiz.questions):
        room.current_question_index = next_index
        room.current_question_started_at = now
        await store.reset_answered_flags(db, room.id)
        await save_job(db, room.id, next_index, now + settings.QUESTION_TIMEOUT_MS)
        logger.info(
            f"Room {room.code} advanced to question {next_index} "
            f"({'all answered' if all_answered else 'timed out'})"
        )
        return AdvanceOutcome.ADVANCED

    room.status = RoomStatus.FINISHED
    room.current_question_started_at = None
    await clear_job(db, room.id)
    logger.info(f"Room {room.code} finished after {len(quiz.questions)} questions")
    return AdvanceOutcome.FINISHED


def arm_next_timeout(room: Room, outcome: AdvanceOutcome):
    if outcome == AdvanceOutcome.ADVANCED:
        arm_question_timeout(
            room.id,
            room.current_question_index,
            room.current_question_started_at + settings.QUESTION_TIMEOUT_MS,
        )


async def submit_answer(
    db: AsyncSession,
    room_id: int,
    question_index: int,
    selected_index: int,
    time_taken_ms: int,
    user_id: int,
) -> AnswerResult:
    """Record the caller's answer to the current question and try to advance."""
    async with store.locked_room(db, room_id) as room:
        if not room:
            raise NotFound("Room not found.", field="room_id")

        if room.status != RoomStatus.ACTIVE:
            raise InvalidState("Quiz is not active. Answers cannot be submitted.")

        if room.current_question_index != question_index:
            logger.debug(
                f"Stale answer from user {user_id} in room {room.code}: "
                f"question {question_index}, current {room.current_question_index}"
            )
            raise StaleSubmission("Answer submitted for an incorrect question index.", field="questionIndex")

        player = await store.get_player(db, room.id, user_id)
        if not player:
            raise NotAMember("Player not found in this room.")

        if player.has_answered_current_question:
            raise AlreadyAnswered("You have already answered this question.")

        quiz = room.quiz
        if not quiz:
            raise NotFound("Quiz data not found for this room.")
        if not 0 <= question_index < len(quiz.questions):
            raise NotFound("Question not found in quiz data.", field="questionIndex")

        question = quiz.questions[question_index]
        is_correct = selected_index == question.correct_option_index
        score_earned = settings.CORRECT_ANSWER_POINTS if is_correct else 0

        db.add(PlayerAnswer(
            player_id=player.id,
            question_index=question_index,
            selected_index=selected_index,
            is_correct=is_correct,
            time_taken_ms=time_taken_ms,
            answered_at=utils.now_ms(),
        ))
        player.score = player.score + score_earned
        player.has_answered_current_question = True
        await db.flush()

        outcome = await evaluate_advancement(db, room)

    arm_next_timeout(room, outcome)
    return AnswerResult(is_correct=is_correct, score_earned=score_earned, outcome=outcome)


async def advance_to_next_question_or_finish(db: AsyncSession, room_id: int) -> AdvanceOutcome:
    """Move the room on if everyone answered or the question timed out.

    Safe to call redundantly: a room that is missing, not active or still
    waiting is left untouched.
    """
    async with store.locked_room(db, room_id) as room:
        if not room:
            outcome = AdvanceOutcome.NO_ACTION_QUIZ_NOT_ACTIVE
        else:
            outcome = await evaluate_advancement(db, room)

    if room:
        arm_next_timeout(room, outcome)
    return outcome


async def handle_question_timeout(db: AsyncSession, room_id: int, expected_question_index: int) -> Optional[AdvanceOutcome]:
    """Timeout job body. Returns None when the job is stale."""
    rearm_at = None
    async with store.locked_room(db, room_id) as room:
        if (
            not room
            or room.status != RoomStatus.ACTIVE
            or room.current_question_index != expected_question_index
        ):
            logger.debug(
                f"Timeout for room {room_id}, question {expected_question_index} is stale. "
                f"Current index: {room.current_question_index if room else None}, "
                f"status: {room.status.value if room else None}"
            )
            if room:
                await clear_job(db, room.id, expected_question_index)
            outcome = None
        else:
            logger.debug(f"Timeout triggered for room {room.code}, question {expected_question_index}")
            outcome = await evaluate_advancement(db, room)
            if outcome == AdvanceOutcome.NO_ACTION_WAITING:
                # Timer fired ahead of the wall clock; wait out the remainder
                rearm_at = room.current_question_started_at + settings.QUESTION_TIMEOUT_MS
                await save_job(db, room.id, expected_question_index, rearm_at)

    if rearm_at is not None:
        arm_question_timeout(room_id, expected_question_index, rearm_at)
    elif outcome is not None:
        arm_next_timeout(room, outcome)
    return outcome


async def run_question_timeout(session_factory: Callable[[], AsyncSession], room_id: int, question_index: int):
    """Scheduler callback: runs the timeout in its own session and notifies subscribers."""
    async with session_factory() as db:
        outcome = await handle_question_timeout(db, room_id, question_index)
        if outcome in (AdvanceOutcome.ADVANCED, AdvanceOutcome.FINISHED):
            room = await db.get(Room, room_id)
            if room:
                await manager.publish_room(room)
