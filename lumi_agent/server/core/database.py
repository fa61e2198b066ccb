"""
Database Connection and Session Management.

This module sets up the asynchronous SQLAlchemy engine and session factory
used by the SQL repositories.
"""

from lumi_agent.agent_core.repos.models import Base
from lumi_agent.agent_core.repos.sql import create_engine, create_sessionmaker
from lumi_agent.core.config import settings

engine = create_engine(settings.database_url, echo=bool(settings.database_echo))

async_session_maker = create_sessionmaker(engine)


async def init_db() -> None:
    """
    Initialize the database.

    Creates all tables defined in the agent core ORM metadata if they do not exist.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
