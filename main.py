from contextlib import asynccontextmanager
from functools import partial
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from quizroom.routes import quiz, rooms, websocket
from quizroom.core.config import settings
from quizroom.core.errors import QuizRoomError, quiz_room_error_handler
from quizroom.core.logging_config import configure_logging
from quizroom.core.scheduler import scheduler
from quizroom.db.session import AsyncSessionLocal
from quizroom.services.engine import run_question_timeout


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = configure_logging()
    scheduler.configure(partial(run_question_timeout, AsyncSessionLocal))
    async with AsyncSessionLocal() as db:
        await scheduler.restore(db)
    logger.info("Quiz room service started")
    yield
    await scheduler.shutdown()


app = FastAPI(title="Quiz Room API", lifespan=lifespan)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(QuizRoomError, quiz_room_error_handler)

# Include routers
app.include_router(quiz.router, prefix="/api", tags=["quiz"])
app.include_router(rooms.router, prefix="/api", tags=["rooms"])
app.include_router(websocket.router, tags=["websocket"])

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8002,
        reload=True,
        workers=1,
    )
