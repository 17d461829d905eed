from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from functools import wraps
from typing import AsyncGenerator
import logging

from crewmate.config import get_settings
from crewmate.core.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

_settings = get_settings()

engine = create_async_engine(
    _settings.database.url,
    echo=_settings.database.echo,
    pool_pre_ping=_settings.database.pool_pre_ping,
)
SessionLocal = async_sessionmaker(
    bind=engine, autoflush=False, expire_on_commit=False, class_=AsyncSession
)

# SQLAlchemy declarative base for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def store_operation(name: str):
    """
    Wrap an async service method so store outages surface as TransientStoreError.

    Only connectivity failures are translated; integrity and programming errors
    propagate unchanged.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except OperationalError as e:
                logger.error(f"Store unavailable during {name}: {e}")
                raise TransientStoreError(name, {"operation": name, "error": str(e.orig)}) from e
            except DBAPIError as e:
                if not e.connection_invalidated:
                    raise
                logger.error(f"Store connection lost during {name}: {e}")
                raise TransientStoreError(name) from e
        return wrapper
    return decorator


async def create_schema() -> None:
    """Create all tables (development / test bootstrap; Alembic owns production)."""
    import crewmate.models  # noqa: F401  registers mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
