from sqlalchemy import Column, Integer, BigInteger, ForeignKey
from quizroom.db.base_class import Base

class QuestionTimeout(Base):
    """The pending timeout job of a room; at most one per room."""

    __tablename__ = "question_timeouts"

    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), primary_key=True)
    question_index = Column(Integer, nullable=False)
    fire_at = Column(BigInteger, nullable=False)
