from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from quizroom.db.session import get_db
from quizroom.core.errors import NotFound
from quizroom.core.security import get_current_user
from quizroom.schemas.quiz import QuizCreate, Quiz as QuizSchema
from quizroom.models.quiz import Quiz, Question
from quizroom.models.user import User

router = APIRouter()


def serialize_quiz(quiz: Quiz) -> dict:
    return {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "createdAt": quiz.created_at,
        "createdBy": {
            "id": quiz.created_by.id,
            "username": quiz.created_by.username
        } if quiz.created_by else None,
        "questions": [
            {
                "id": q.id,
                "question": q.text,
                "options": q.options,
                "correctOptionIndex": q.correct_option_index,
                "explanation": q.explanation,
                "difficulty": q.difficulty,
                "questionType": q.question_type
            }
            for q in quiz.questions
        ]
    }


async def load_quiz(db: AsyncSession, quiz_id: int) -> Quiz:
    stmt = select(Quiz).options(
        selectinload(Quiz.questions),
        selectinload(Quiz.created_by)
    ).where(Quiz.id == quiz_id).execution_options(populate_existing=True)
    result = await db.execute(stmt)
    quiz = result.scalar_one_or_none()
    if not quiz:
        raise NotFound(f"Quiz with ID {quiz_id} does not exist", field="quiz_id")
    return quiz


@router.post("/quizzes", response_model=QuizSchema)
async def create_quiz(
    quiz_data: QuizCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Store a quiz produced by the quiz generator."""
    try:
        quiz = Quiz(
            title=quiz_data.title,
            description=quiz_data.description,
            created_by_id=current_user.id
        )
        db.add(quiz)
        await db.flush()  # Flush to get the quiz ID

        for i, q_data in enumerate(quiz_data.questions):
            db.add(Question(
                quiz_id=quiz.id,
                text=q_data.question,
                options=q_data.options,
                correct_option_index=q_data.correctOptionIndex,
                explanation=q_data.explanation,
                difficulty=q_data.difficulty,
                question_type=q_data.questionType,
                order=i
            ))

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return serialize_quiz(await load_quiz(db, quiz.id))


@router.get("/quizzes/{quiz_id}", response_model=QuizSchema)
async def get_quiz(
    quiz_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get quiz details by ID."""
    return serialize_quiz(await load_quiz(db, quiz_id))
