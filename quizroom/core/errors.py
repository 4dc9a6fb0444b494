"""Typed failures raised by the room services.

Every error maps to one HTTP status and renders with the same detail
envelope the quiz routes use: ``{"error", "message", "details"}``.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse


class QuizRoomError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "QuizRoomError"

    def __init__(self, message: str, field: str = ""):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> dict:
        details = [{"field": self.field, "message": self.message}] if self.field else []
        return {"error": self.error, "message": self.message, "details": details}


class Unauthenticated(QuizRoomError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthenticated"


class NotFound(QuizRoomError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "NotFound"


class Forbidden(QuizRoomError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class NotAMember(QuizRoomError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "NotAMember"


class InvalidState(QuizRoomError):
    status_code = status.HTTP_409_CONFLICT
    error = "InvalidState"


class RoomClosed(InvalidState):
    error = "RoomClosed"


class StaleSubmission(QuizRoomError):
    status_code = status.HTTP_409_CONFLICT
    error = "StaleSubmission"


class AlreadyAnswered(QuizRoomError):
    status_code = status.HTTP_409_CONFLICT
    error = "AlreadyAnswered"


class RoomCodeUnavailable(QuizRoomError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error = "RoomCodeUnavailable"


async def quiz_room_error_handler(request: Request, exc: QuizRoomError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_detail()},
        headers=headers,
    )
