from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from aetherra.core.config import settings
from aetherra.core.exceptions import UpstreamServiceError
from aetherra.core.logging import db_logger

# Create Async Engine
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)

# Create SessionLocal
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Base class for models
Base = declarative_base()


# Dependency for FastAPI routes
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session


async def commit_or_raise(db: AsyncSession, action: str) -> None:
    """Commit the session; a store failure rolls back and surfaces as 503."""
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        db_logger.error(f"Failed to {action}: {e}")
        raise UpstreamServiceError("database", f"Could not {action}, please retry") from e


def import_models():
    """Register every table on ``Base.metadata``."""
    import aetherra.models.user  # noqa: F401
    import aetherra.models.calculation  # noqa: F401
    import aetherra.models.goal  # noqa: F401
    import aetherra.models.report  # noqa: F401
    import aetherra.models.ai_analysis  # noqa: F401
    import aetherra.models.activity  # noqa: F401
    import aetherra.models.insight  # noqa: F401


# Called on app startup
async def init_db():
    import_models()

    async with engine.begin() as conn:
        if settings.ENVIRONMENT == "development":
            await conn.run_sync(Base.metadata.create_all)
