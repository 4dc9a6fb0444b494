from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from quizroom.db.base_class import Base

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    profile_image = Column(String(500))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
