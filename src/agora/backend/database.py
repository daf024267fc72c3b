"""Database engine and session factory"""
import logging

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import all models to ensure they are registered with SQLModel
from .model import User, VerificationCode, Conversation, Message  # noqa: F401

logger = logging.getLogger(__name__)


def create_engine(database_url: str, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create the async engine

    Plain ``sqlite://`` URLs are switched to the aiosqlite driver.
    """
    if database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)

    connect_args = kwargs.pop("connect_args", {})
    if database_url.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
        # In-memory databases live in one connection; share it across sessions
        if database_url.endswith("://") or ":memory:" in database_url:
            kwargs.setdefault("poolclass", StaticPool)

    return create_async_engine(
        database_url,
        echo=echo,
        future=True,
        connect_args=connect_args,
        **kwargs,
    )


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    """Create async session factory bound to the engine"""
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_db_and_tables(engine: AsyncEngine) -> None:
    """Create database tables"""
    logger.info("Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created successfully")
