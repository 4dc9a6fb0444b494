from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from quizroom.db.session import get_db
from quizroom.core.security import get_current_user
from quizroom.core.websocket import manager, room_state_message
from quizroom.models.room import Room
from quizroom.models.user import User
from quizroom.schemas.room import (
    AdvanceResponse,
    CreateRoomRequest,
    CreateRoomResponse,
    DeleteRoomResponse,
    JoinRoomRequest,
    JoinRoomResponse,
    LeaveRoomResponse,
    LobbyView,
    ParticipantsView,
    PlayView,
    ResultsView,
    RoomState,
    SignalingIdRequest,
    SignalingIdResponse,
    SubmitAnswerRequest,
    SubmitAnswerResponse,
)
from quizroom.services import engine, projections, rooms
from quizroom.services.rooms import LeaveOutcome

router = APIRouter()

LEAVE_MESSAGES = {
    LeaveOutcome.NOT_IN_ROOM: "Player not found in this room.",
    LeaveOutcome.ROOM_DELETED: "Left the room. The room was empty and has been deleted.",
    LeaveOutcome.HOST_PROMOTED: "Left the room. A new host has been assigned.",
    LeaveOutcome.LEFT: "Left the room.",
}


def room_state(room: Room) -> dict:
    return room_state_message(room)["room"]


@router.post("/rooms", response_model=CreateRoomResponse)
async def create_room(
    data: CreateRoomRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    room = await rooms.create_room(db, data.quizId, current_user.id)
    return {"roomId": room.id, "code": room.code}


@router.post("/rooms/join", response_model=JoinRoomResponse)
async def join_room(
    data: JoinRoomRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    room, already_in_room = await rooms.join_room(db, data.code, current_user.id)
    if not already_in_room:
        await manager.publish_room(room)
    return {"roomId": room.id, "code": room.code, "alreadyInRoom": already_in_room}


@router.post("/rooms/{room_id}/start", response_model=RoomState)
async def start_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    room = await rooms.start_room(db, room_id, current_user.id)
    await manager.publish_room(room)
    return room_state(room)


@router.post("/rooms/{room_id}/leave", response_model=LeaveRoomResponse)
async def leave_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await rooms.leave_room(db, room_id, current_user.id)
    if result.outcome == LeaveOutcome.ROOM_DELETED:
        await manager.publish_room_deleted(result.room.code)
    elif result.outcome != LeaveOutcome.NOT_IN_ROOM:
        await manager.publish_room(result.room)

    return {
        "success": result.outcome != LeaveOutcome.NOT_IN_ROOM,
        "outcome": result.outcome.value,
        "message": LEAVE_MESSAGES[result.outcome],
        "newHostId": result.new_host_id,
    }


@router.delete("/rooms/{room_id}", response_model=DeleteRoomResponse)
async def delete_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    code = await rooms.delete_room(db, room_id, current_user.id)
    await manager.publish_room_deleted(code)
    return {"success": True, "message": "Room deleted successfully."}


@router.put("/rooms/{room_id}/signaling", response_model=SignalingIdResponse)
async def set_signaling_id(
    room_id: int,
    data: SignalingIdRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    player = await rooms.set_signaling_id(db, room_id, current_user.id, data.signalingId)
    return {"playerId": player.id, "signalingId": player.signaling_id}


@router.post("/rooms/{room_id}/answers", response_model=SubmitAnswerResponse)
async def submit_answer(
    room_id: int,
    data: SubmitAnswerRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await engine.submit_answer(
        db, room_id, data.questionIndex, data.selectedIndex, data.timeTaken, current_user.id
    )
    room = await db.get(Room, room_id)
    if room:
        await manager.publish_room(room)
    return {
        "success": True,
        "isCorrect": result.is_correct,
        "scoreEarned": result.score_earned,
        "advance": result.outcome.value,
    }


@router.post("/rooms/{room_id}/advance", response_model=AdvanceResponse)
async def advance_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Ask the room to move on; a no-op unless everyone answered or time is up."""
    outcome = await engine.advance_to_next_question_or_finish(db, room_id)
    if outcome in (engine.AdvanceOutcome.ADVANCED, engine.AdvanceOutcome.FINISHED):
        room = await db.get(Room, room_id)
        if room:
            await manager.publish_room(room)
    return {"status": outcome.value}


@router.get("/rooms/code/{code}/lobby", response_model=LobbyView)
async def get_lobby(
    code: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await projections.get_lobby(db, code)


@router.get("/rooms/code/{code}/play", response_model=PlayView)
async def get_play(
    code: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await projections.get_play(db, code, current_user.id)


@router.get("/rooms/code/{code}/results", response_model=ResultsView)
async def get_results(
    code: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await projections.get_results(db, code)


@router.get("/rooms/code/{code}/participants", response_model=ParticipantsView)
async def get_participants(
    code: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await projections.get_participants(db, code)
