"""
Notes Pipeline API

FastAPI entry point. Builds the shared services once at startup:

    GenerationClient → NotesPipeline ─┐
    async_session_maker → JobQueue ───┴→ JobWorker (when RUN_EMBEDDED_WORKER)

Job events go to an in-process JobEventBus, or to Redis pub/sub when
JOB_EVENTS_BACKEND=redis. Workers in separate processes use
scripts/run_worker.py instead of the embedded worker.

Run:
    uvicorn app.main:app --app-dir backend
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import pipeline_settings, settings
from app.db.base import async_session_maker, init_db
from app.db.redis import close_redis_pool
from app.middleware import setup_error_handling
from app.routers import health_router, jobs_router
from app.services.jobs import (
    ExtractorRegistry,
    JobEventBus,
    JobQueue,
    JobWorker,
    RedisJobEventPublisher,
)
from app.services.llm import GenerationClient
from app.services.processing import NotesPipeline

logger = logging.getLogger(__name__)


def build_event_publisher():
    if settings.JOB_EVENTS_BACKEND == "redis":
        return RedisJobEventPublisher()
    return JobEventBus()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    await init_db()

    queue = JobQueue(async_session_maker, events=build_event_publisher())
    app.state.job_queue = queue
    app.state.worker = None

    if settings.RUN_EMBEDDED_WORKER:
        pipeline = NotesPipeline(GenerationClient(), settings=pipeline_settings)
        worker = JobWorker(queue, pipeline, extractor=ExtractorRegistry())
        await worker.start()
        app.state.worker = worker

    logger.info(f"{settings.APP_NAME} started")
    yield

    if app.state.worker is not None:
        await app.state.worker.stop()
    if settings.JOB_EVENTS_BACKEND == "redis":
        await close_redis_pool()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
setup_error_handling(app, debug=settings.DEBUG)

app.include_router(health_router.router)
app.include_router(jobs_router.router)
app.include_router(jobs_router.worker_router)


@app.get("/")
async def root():
    return {"message": settings.APP_NAME}
