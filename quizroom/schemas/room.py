from pydantic import BaseModel, Field
from typing import List, Optional

class CreateRoomRequest(BaseModel):
    quizId: int

class CreateRoomResponse(BaseModel):
    roomId: int
    code: str

class JoinRoomRequest(BaseModel):
    code: str = Field(min_length=1, max_length=16)

class JoinRoomResponse(BaseModel):
    roomId: int
    code: str
    alreadyInRoom: bool

class RoomState(BaseModel):
    id: int
    code: str
    status: str
    currentQuestionIndex: int
    currentQuestionStartedAt: Optional[int] = None
    hostId: int

class LeaveRoomResponse(BaseModel):
    success: bool
    outcome: str
    message: str
    newHostId: Optional[int] = None

class DeleteRoomResponse(BaseModel):
    success: bool
    message: str

class SignalingIdRequest(BaseModel):
    signalingId: Optional[str] = Field(default=None, max_length=255)

class SignalingIdResponse(BaseModel):
    playerId: int
    signalingId: Optional[str] = None

class SubmitAnswerRequest(BaseModel):
    questionIndex: int = Field(ge=0)
    selectedIndex: int = Field(ge=0)
    timeTaken: int = Field(ge=0, description="Milliseconds the player took to answer")

class SubmitAnswerResponse(BaseModel):
    success: bool
    isCorrect: bool
    scoreEarned: int
    advance: str

class AdvanceResponse(BaseModel):
    status: str

# Projections

class LobbyQuiz(BaseModel):
    id: int
    title: str
    description: str
    questionCount: int

class LobbyPlayer(BaseModel):
    playerId: int
    userId: int
    username: str
    profileImage: Optional[str] = None
    isHost: bool
    joinedAt: int

class LobbyView(BaseModel):
    id: int
    code: str
    status: str
    hostId: int
    quiz: LobbyQuiz
    players: List[LobbyPlayer]

class PlayRoom(BaseModel):
    id: int
    status: str
    currentQuestionIndex: int
    currentQuestionStartedAt: Optional[int] = None
    hostId: int

class PlayQuestion(BaseModel):
    question: str
    options: List[str]
    correctOptionIndex: int
    explanation: str
    difficulty: str
    questionType: str

class PlayQuiz(BaseModel):
    id: int
    title: str
    questions: List[PlayQuestion]

class CurrentPlayer(BaseModel):
    playerId: int
    userId: int
    score: int
    hasAnsweredCurrentQuestion: bool

class ScoreboardEntry(BaseModel):
    userId: int
    username: str
    profileImage: Optional[str] = None
    score: int
    hasAnsweredCurrentQuestion: bool
    isHost: bool

class PlayView(BaseModel):
    room: PlayRoom
    quiz: PlayQuiz
    currentPlayer: CurrentPlayer
    allPlayers: List[ScoreboardEntry]

class ResultsEntry(BaseModel):
    userId: int
    username: str
    profileImage: Optional[str] = None
    score: int
    isHost: bool

class ResultsView(BaseModel):
    quizId: int
    quizTitle: str
    roomStatus: str
    hostId: int
    players: List[ResultsEntry]

class Participant(BaseModel):
    playerId: int
    userId: int
    username: str
    isHost: bool
    signalingId: Optional[str] = None

class ParticipantsView(BaseModel):
    roomId: int
    participants: List[Participant]
