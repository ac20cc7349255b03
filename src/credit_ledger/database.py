"""Database session management with async SQLAlchemy."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from credit_ledger.config import settings

# Create async engine
engine = create_async_engine(
    str(settings.database_url),
    echo=False,
    pool_pre_ping=True,
)

# Create async session factory, shared by the API and the workers
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Declarative base for all models
Base = declarative_base()
