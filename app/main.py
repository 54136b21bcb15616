import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.admin import router as admin_router
from app.api.chat import router as chat_router
from app.api.features import router as features_router
from app.api.memories import router as memories_router
from app.api.personality import router as personality_router
from app.api.relationship import router as relationship_router
from app.api.usage import router as usage_router
from app.core.config import settings
from app.core.errors import EngagementError, TransientStoreError, engagement_error_handler
from app.db.session import create_tables
from app.scheduler import start_scheduler, stop_scheduler
from app.utils.infrastructure.rate_limiter import rate_limit
from app.utils.infrastructure.redis_pool import close_redis, redis_ready

log = logging.getLogger("engagement")
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        await create_tables()
    start_scheduler()
    log.info("Engagement engine started")
    try:
        yield
    finally:
        stop_scheduler()
        await close_redis()
        log.info("Engagement engine stopped")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(EngagementError, engagement_error_handler)

api_limit = [Depends(rate_limit("api"))]

app.include_router(personality_router, dependencies=api_limit)
app.include_router(relationship_router, dependencies=api_limit)
app.include_router(chat_router, dependencies=api_limit)
app.include_router(features_router, dependencies=api_limit)
app.include_router(usage_router, dependencies=api_limit)
app.include_router(memories_router, dependencies=api_limit)
app.include_router(admin_router)


@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/health/ready")
async def ready():
    if not await redis_ready():
        raise TransientStoreError("counter store is not reachable")
    return {"ok": True}
