"""
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tutorquiz.api.admin import router as admin_router
from tutorquiz.api.attempts import router as attempts_router
from tutorquiz.api.auth import router as auth_router
from tutorquiz.api.questions import router as questions_router
from tutorquiz.api.quizzes import router as quizzes_router
from tutorquiz.api.stats import router as stats_router
from tutorquiz.core.config import settings
from tutorquiz.core.database import close_db, init_db
from tutorquiz.core.errors import register_exception_handlers

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")
    init_db()
    yield
    logger.info(f"Shutting down {settings.APP_NAME}")
    close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

prefix = settings.API_V1_PREFIX
app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
app.include_router(quizzes_router, prefix=f"{prefix}/quizzes", tags=["quizzes"])
app.include_router(questions_router, prefix=prefix, tags=["questions"])
app.include_router(attempts_router, prefix=f"{prefix}/attempts", tags=["attempts"])
app.include_router(stats_router, prefix=f"{prefix}/stats", tags=["stats"])
app.include_router(admin_router, prefix=f"{prefix}/admin", tags=["admin"])


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "version": settings.APP_VERSION, "environment": settings.ENVIRONMENT}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tutorquiz.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
