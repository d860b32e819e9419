from contextlib import asynccontextmanager
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from auditdesk.core.config import settings


# Main engine for the API process and its in-process scheduler (pooled)
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# === Celery-specific session factory (SINGLETON) ===
# Each Celery task runs on its own short-lived event loop, so pooled connections
# must not outlive a task: NullPool hands out a fresh connection per session.

_celery_engine = None
_celery_session_factory = None


def _get_celery_engine():
    """Get or create the singleton NullPool engine used by Celery tasks."""
    global _celery_engine
    if _celery_engine is None:
        _celery_engine = create_async_engine(
            settings.DATABASE_URL,
            echo=False,
            future=True,
            poolclass=NullPool,
        )
    return _celery_engine


def _get_celery_session_factory():
    """Get or create singleton session factory for Celery tasks."""
    global _celery_session_factory
    if _celery_session_factory is None:
        _celery_session_factory = async_sessionmaker(
            _get_celery_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )
    return _celery_session_factory


@asynccontextmanager
async def session_scope(session_factory=None):
    """
    Open a session for one unit of background work.

    Usage:
        async with session_scope() as db:
            await TierService.from_session(db).update_all_tiers()
    """
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def get_celery_db():
    """Session context manager bound to the Celery engine."""
    return session_scope(_get_celery_session_factory())


async def dispose_celery_engine():
    """
    Dispose the Celery engine on worker shutdown.
    Call this in Celery worker shutdown signal handler.
    """
    global _celery_engine, _celery_session_factory
    if _celery_engine is not None:
        await _celery_engine.dispose()
        _celery_engine = None
        _celery_session_factory = None
