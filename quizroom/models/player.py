from sqlalchemy import Column, Integer, BigInteger, String, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from quizroom.db.base_class import Base

class Player(Base):
    __tablename__ = "players"
    __table_args__ = (UniqueConstraint("room_id", "user_id", name="uq_players_room_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_host = Column(Boolean, nullable=False, default=False)
    joined_at = Column(BigInteger, nullable=False)
    signaling_id = Column(String(255))
    score = Column(Integer, nullable=False, default=0)
    has_answered_current_question = Column(Boolean, nullable=False, default=False)

    # Relationships
    user = relationship("User", lazy="selectin")


class PlayerAnswer(Base):
    """One entry of a player's append-only answer log."""

    __tablename__ = "player_answers"
    __table_args__ = (UniqueConstraint("player_id", "question_index", name="uq_player_answers_question"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True)
    question_index = Column(Integer, nullable=False)
    selected_index = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    time_taken_ms = Column(Integer, nullable=False)
    answered_at = Column(BigInteger, nullable=False)
