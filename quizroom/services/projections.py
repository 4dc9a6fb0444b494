"""Read-only views of a room for its connected clients."""
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.core.errors import InvalidState, NotAMember, NotFound
from quizroom.models.player import Player
from quizroom.models.room import Room, RoomStatus
from quizroom.services import store


async def _room_or_404(db: AsyncSession, code: str) -> Room:
    room = await store.get_room_by_code(db, code)
    if not room:
        raise NotFound("Room not found. Please check the code.", field="code")
    return room


def _quiz_or_404(room: Room):
    if not room.quiz:
        raise NotFound("Quiz data not found for this room.")
    return room.quiz


def _username(player: Player, fallback: str) -> str:
    return player.user.username if player.user and player.user.username else fallback


def _profile_image(player: Player):
    return player.user.profile_image if player.user else None


async def get_lobby(db: AsyncSession, code: str) -> dict:
    """Room, quiz summary and players in join order; no scores or answers."""
    room = await _room_or_404(db, code)
    quiz = _quiz_or_404(room)
    players = await store.list_players(db, room.id)

    return {
        "id": room.id,
        "code": room.code,
        "status": room.status.value,
        "hostId": room.host_id,
        "quiz": {
            "id": quiz.id,
            "title": quiz.title,
            "description": quiz.description,
            "questionCount": len(quiz.questions),
        },
        "players": [
            {
                "playerId": p.id,
                "userId": p.user_id,
                "username": _username(p, "Unknown Player"),
                "profileImage": _profile_image(p),
                "isHost": p.is_host,
                "joinedAt": p.joined_at,
            }
            for p in players
        ],
    }


async def get_play(db: AsyncSession, code: str, user_id: int) -> dict:
    room = await _room_or_404(db, code)
    if room.status not in (RoomStatus.ACTIVE, RoomStatus.FINISHED):
        raise InvalidState("Quiz is not active or has not finished yet.")

    quiz = _quiz_or_404(room)
    players = await store.list_players(db, room.id)
    current = next((p for p in players if p.user_id == user_id), None)
    if not current:
        raise NotAMember("Player not found in this room.")

    return {
        "room": {
            "id": room.id,
            "status": room.status.value,
            "currentQuestionIndex": room.current_question_index,
            "currentQuestionStartedAt": room.current_question_started_at,
            "hostId": room.host_id,
        },
        "quiz": {
            "id": quiz.id,
            "title": quiz.title,
            # Every question is sent so clients can show progress; answers are judged server-side
            "questions": [
                {
                    "question": q.text,
                    "options": q.options,
                    "correctOptionIndex": q.correct_option_index,
                    "explanation": q.explanation,
                    "difficulty": q.difficulty,
                    "questionType": q.question_type,
                }
                for q in quiz.questions
            ],
        },
        "currentPlayer": {
            "playerId": current.id,
            "userId": current.user_id,
            "score": current.score,
            "hasAnsweredCurrentQuestion": current.has_answered_current_question,
        },
        "allPlayers": [
            {
                "userId": p.user_id,
                "username": _username(p, "Player"),
                "profileImage": _profile_image(p),
                "score": p.score,
                "hasAnsweredCurrentQuestion": p.has_answered_current_question,
                "isHost": p.is_host,
            }
            for p in players
        ],
    }


def results_order(entry: dict):
    # Score descending, then username ascending
    return (-entry["score"], entry["username"].casefold(), entry["username"])


async def get_results(db: AsyncSession, code: str) -> dict:
    room = await _room_or_404(db, code)
    if room.status not in (RoomStatus.ACTIVE, RoomStatus.FINISHED):
        raise InvalidState("Quiz is not yet finished or active.")

    quiz = _quiz_or_404(room)
    players = await store.list_players(db, room.id)
    entries = [
        {
            "userId": p.user_id,
            "username": _username(p, "Player"),
            "profileImage": _profile_image(p),
            "score": p.score,
            "isHost": p.is_host,
        }
        for p in players
    ]

    return {
        "quizId": quiz.id,
        "quizTitle": quiz.title,
        "roomStatus": room.status.value,
        "hostId": room.host_id,
        "players": sorted(entries, key=results_order),
    }


async def get_participants(db: AsyncSession, code: str) -> dict:
    """Players with their signaling ids, for opening direct peer connections."""
    room = await _room_or_404(db, code)
    players = await store.list_players(db, room.id)
    return {
        "roomId": room.id,
        "participants": [
            {
                "playerId": p.id,
                "userId": p.user_id,
                "username": _username(p, "Player"),
                "isHost": p.is_host,
                "signalingId": p.signaling_id,
            }
            for p in players
        ],
    }
