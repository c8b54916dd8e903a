"""
Fulbo API Server

Organizer for a group's weekly Sunday football game: monthly availability
voting, rosters and teams, results, MVP votes and rankings.

Run with:
    uvicorn fulbo.api.main:app --reload
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from fulbo.api.routes import router, limiter
from fulbo.database import db
from fulbo.database.init_defaults import init_defaults
from fulbo.services import settings_service

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ENV_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(level=getattr(logging, ENV_LOG_LEVEL, logging.INFO), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


async def apply_log_level_setting() -> None:
    """The log_level setting, when present, wins over LOG_LEVEL."""
    async with db.AsyncSessionLocal() as session:
        level_name = await settings_service.get_setting(session, "log_level")
    if not level_name:
        return
    level_name = level_name.upper()
    logging.getLogger().setLevel(getattr(logging, level_name, logging.INFO))
    logger.info(f"Log level {level_name} applied from settings")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Fulbo API starting ({db.STORAGE_BACKEND} storage)")

    # Startup problems are logged; the API still comes up so /api/health answers.
    try:
        await db.init_database()
        await init_defaults()
    except Exception as e:
        logger.error(f"Startup initialization failed: {e}", exc_info=True)
    else:
        try:
            await apply_log_level_setting()
        except Exception as e:
            logger.warning(f"Keeping LOG_LEVEL={ENV_LOG_LEVEL}: {e}")

    yield

    logger.info("Fulbo API shutting down")
    try:
        await settings_service.close_redis_connection()
    except Exception as e:
        logger.error(f"Error closing the settings cache: {e}", exc_info=True)


app = FastAPI(
    title="Fulbo API",
    description="Weekly Sunday football: availability, games, MVP and rankings",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)

LANDING_PAGE = """<!DOCTYPE html>
<html>
    <head><title>Fulbo API</title></head>
    <body style="font-family: sans-serif; max-width: 720px; margin: 40px auto;">
        <h1>Fulbo API</h1>
        <p>The API is up. The web client is served separately.</p>
        <p><a href="/docs">Interactive docs</a> | <a href="/api/health">Health</a></p>
    </body>
</html>
"""


@app.get("/", response_class=HTMLResponse)
async def root():
    return HTMLResponse(content=LANDING_PAGE)


@app.get("/api/health")
async def health_check():
    """Health check for load balancers and uptime monitors."""
    return {"status": "healthy", "message": "API is running", "storage": db.STORAGE_BACKEND}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
