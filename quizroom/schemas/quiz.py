from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

class QuestionBase(BaseModel):
    question: str
    options: List[str] = Field(min_length=2)
    correctOptionIndex: int
    explanation: str = ""
    difficulty: str = ""
    questionType: str = ""

    @model_validator(mode="after")
    def check_correct_option(self):
        if not 0 <= self.correctOptionIndex < len(self.options):
            raise ValueError("correctOptionIndex must point into options")
        return self

class QuestionCreate(QuestionBase):
    pass

class Question(QuestionBase):
    id: int

class QuizBase(BaseModel):
    title: str
    description: str = ""

class QuizCreate(QuizBase):
    questions: List[QuestionCreate] = Field(min_length=1)

class UserInfo(BaseModel):
    id: int
    username: str

class Quiz(QuizBase):
    id: int
    createdAt: Optional[datetime] = None
    createdBy: Optional[UserInfo] = None
    questions: List[Question]
