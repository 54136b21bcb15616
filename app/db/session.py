from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from app.core.config import settings
from app.db.models import Base

engine = create_async_engine(
    settings.DB_URL.replace("psycopg2", "asyncpg"),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

async def get_db():
    async with SessionLocal() as session:
        yield session

async def create_tables():
    """Local/dev bootstrap (AUTO_CREATE_TABLES); production schemas are provisioned ahead of deploy."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

def get_session_factory():
    """Factory for jobs that open their own sessions (one per unit of work)."""
    return SessionLocal
