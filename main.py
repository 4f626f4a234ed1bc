import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

import redis
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.gzip import GZipMiddleware

from config import settings
from database import SessionLocal, get_db
from errors import RSSReaderError
from feed_parser import FeedParser
from gateway import RefreshGateway
from logger import HealthzAccessFilter, logger
from scheduler import FeedScheduler
from worker import FeedWorker
from articles_router import router as articles_router
from feeds_router import router as feeds_router
from jobs_router import router as jobs_router

# CORS: local dev frontend; extra origins via env ALLOW_ORIGINS (comma-separated)
_DEFAULT_ORIGINS = [
    "http://localhost:3000",
]
_EXTRA = [o.strip() for o in (settings.ALLOW_ORIGINS or "").split(",") if o.strip()]
FRONTEND_ORIGINS = _DEFAULT_ORIGINS + _EXTRA


def create_app(
    redis_conn: Optional[redis.Redis] = None,
    session_factory: Callable[[], Session] = SessionLocal,
    parser=None,
    run_worker: bool = True,
) -> FastAPI:
    """Build the API. The Redis connection, scheduler and worker live for the app's lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        conn = redis_conn
        owns_conn = conn is None
        if owns_conn:
            conn = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        scheduler = FeedScheduler(conn, session_factory)
        gateway = RefreshGateway(scheduler, session_factory, parser or FeedParser())
        worker = FeedWorker(scheduler, gateway)
        app.state.scheduler = scheduler
        app.state.gateway = gateway
        app.state.worker = worker

        if settings.SCHEDULE_ON_STARTUP:
            try:
                scheduler.schedule_all_feeds()
            except redis.RedisError as e:
                logger.warning(f"Could not rebuild feed schedules at startup: {e}")
        if run_worker:
            worker.start()
        try:
            yield
        finally:
            worker.stop()
            if owns_conn:
                conn.close()

    app = FastAPI(
        title="Collaborative RSS API",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=FRONTEND_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # GZip large responses (article lists)
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    @app.exception_handler(RSSReaderError)
    async def reader_error_handler(request: Request, exc: RSSReaderError):
        if exc.status_code >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return ORJSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.get("/")
    def home():
        return {"status": "Collaborative RSS API is running"}

    # Public health endpoint (no auth)
    @app.get("/healthz", include_in_schema=False)
    def healthz():
        return {"ok": True}

    @app.get("/self-test")
    def self_test(request: Request, db: Session = Depends(get_db)):
        """Lightweight end-to-end check: DB and Redis."""
        db_ok = False
        redis_ok = False
        try:
            db.execute(text("SELECT 1"))
            db_ok = True
        except Exception as e:
            logger.warning(f"Self-test DB check failed: {e}")
        try:
            redis_ok = bool(request.app.state.scheduler.conn.ping())
        except redis.RedisError as e:
            logger.warning(f"Self-test Redis check failed: {e}")
        return {"api_ok": True, "db_ok": db_ok, "redis_ok": redis_ok}

    app.include_router(feeds_router)
    app.include_router(articles_router)
    app.include_router(jobs_router)
    return app


logging.getLogger("uvicorn.access").addFilter(HealthzAccessFilter())

app = create_app()
