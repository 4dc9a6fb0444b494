from quizroom.models.user import User
from quizroom.models.quiz import Quiz, Question
from quizroom.models.room import Room, RoomStatus
from quizroom.models.player import Player, PlayerAnswer
from quizroom.models.question_timeout import QuestionTimeout

__all__ = [
    "User",
    "Quiz",
    "Question",
    "Room",
    "RoomStatus",
    "Player",
    "PlayerAnswer",
    "QuestionTimeout",
]
