from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from tunematch.core.config import settings
from tunematch.db.session import async_engine as engine, init_db
from tunematch.routes import auth, chat, match
from tunematch.services.chat_relay import ChatRelay
from tunematch.utils.logging import setup_logging

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for the FastAPI application."""
    # Startup
    try:
        logger.info("Creating database tables...")
        await init_db()
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error during startup: {e}")
        raise

    app.state.chat_relay = ChatRelay()

    yield

    # Shutdown
    logger.info("Closing database connections...")
    await engine.dispose()
    logger.info("Database connections closed successfully")

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

# Set up CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(auth.router, tags=["auth"])
app.include_router(match.router, prefix="/api", tags=["match"])
app.include_router(chat.router, tags=["chat"])

@app.get("/health")
async def health_check():
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("tunematch.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
