from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from contentai.config import settings


def create_session_factory(bind: AsyncEngine) -> sessionmaker:
    """Session factory for short-lived units of work; objects stay usable after commit."""
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


engine = create_async_engine(str(settings.SQLALCHEMY_DATABASE_URI), echo=settings.SQL_ECHO, pool_pre_ping=True)
AsyncSessionLocal = create_session_factory(engine)

Base = declarative_base()
