"""FastAPI dependency injection — configuration store, repository, sessions."""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from offerten.db import get_db
from offerten.services.config_store import ConfigStore
from offerten.services.quote_repository import QuoteRepository
from offerten.services.quote_sessions import QuoteSessionRegistry
from offerten.services.report_engine import ReportEngine


async def get_config_store(db: AsyncSession = Depends(get_db)) -> ConfigStore:
    return ConfigStore(db)


async def get_quote_repository(db: AsyncSession = Depends(get_db)) -> QuoteRepository:
    return QuoteRepository(db)


def get_session_registry(request: Request) -> QuoteSessionRegistry:
    """The registry lives on app.state for the lifetime of the process."""
    return request.app.state.sessions


def get_report_engine() -> ReportEngine:
    return ReportEngine()
