# This project was developed with assistance from AI tools.
"""Async SQLAlchemy engine, session factory, and FastAPI dependency."""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .config import db_settings


class Base(DeclarativeBase):
    """Declarative base shared by all workflow models."""


engine = create_async_engine(db_settings.DATABASE_URL, echo=db_settings.SQL_ECHO)

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a session per request; rolls back on unhandled errors."""
    async with SessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that needs several independent sessions."""
    return SessionLocal
