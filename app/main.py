import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.dependencies.redis import close_redis_client, get_redis_client
from app.dependencies.supabase import close_async_supabase, init_async_supabase
from app.routers import events, games

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Baseball Flip Cup API")
    logger.debug("Debug mode: %s", settings.DEBUG)

    # Game store and submission locks
    await init_async_supabase()
    get_redis_client()

    yield

    logger.info("Shutting down Baseball Flip Cup API")
    await close_async_supabase()
    await close_redis_client()
    logger.info("Supabase and Redis cleanup complete")


app = FastAPI(
    title="Baseball Flip Cup API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.debug("CORS configured with origins: %s", settings.CORS_ORIGINS)

app.include_router(events.router, prefix="/api/v1")
app.include_router(games.router, prefix="/api/v1")
logger.debug("Routers registered: /api/v1/events, /api/v1/games")


@app.get("/")
def root():
    return {"message": "Baseball Flip Cup API"}


@app.get("/health")
def health():
    return {"status": "healthy"}
