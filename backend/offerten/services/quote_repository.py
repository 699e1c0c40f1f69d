"""
Quote repository — stores quote records as JSON documents keyed by quote number.

The searchable header fields (location, designation, recipient) are projected
into their own columns so the history list does not have to parse JSON.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from offerten.models.orm_models import QuoteHistory
from offerten.services.pricing_state import PricingSnapshot

logger = logging.getLogger("offerten-db")

_PROJECTED = ("project_location", "project_designation", "recipient_company")


class QuoteNotFoundError(LookupError):
    def __init__(self, quote_number: str):
        super().__init__(f"Quote '{quote_number}' not found")
        self.quote_number = quote_number


def _summary(row: QuoteHistory) -> Dict[str, Any]:
    return {
        "quote_number": row.quote_number,
        "project_location": row.project_location,
        "project_designation": row.project_designation,
        "recipient_company": row.recipient_company,
        "quote_date": (row.quote_data or {}).get("quote_date"),
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


class QuoteRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _row(self, quote_number: str) -> Optional[QuoteHistory]:
        result = await self.db.execute(
            select(QuoteHistory).where(QuoteHistory.quote_number == quote_number)
        )
        return result.scalar_one_or_none()

    async def get(self, quote_number: str) -> Dict[str, Any]:
        row = await self._row(quote_number)
        if row is None:
            raise QuoteNotFoundError(quote_number)
        return {**(row.quote_data or {}), "quote_number": row.quote_number}

    async def exists(self, quote_number: str) -> bool:
        return await self._row(quote_number) is not None

    async def save(self, quote_number: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace the full quote document."""
        document = {**data, "quote_number": quote_number}
        row = await self._row(quote_number)
        if row is None:
            row = QuoteHistory(quote_number=quote_number, quote_data=document)
            self.db.add(row)
            logger.info(f"Quote {quote_number} created", extra={"quote_number": quote_number})
        else:
            row.quote_data = document
        for column in _PROJECTED:
            setattr(row, column, document.get(column))
        await self.db.flush()
        return document

    async def save_pricing(self, quote_number: str, snapshot: PricingSnapshot) -> None:
        """Replace only the pricing part of a stored quote (creates the quote if missing)."""
        row = await self._row(quote_number)
        existing = dict(row.quote_data or {}) if row is not None else {}
        existing["pricing"] = snapshot.to_dict()
        await self.save(quote_number, existing)

    async def list(self, limit: int = 100) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(QuoteHistory).order_by(QuoteHistory.updated_at.desc()).limit(limit)
        )
        return [_summary(r) for r in result.scalars().all()]

    async def delete(self, quote_number: str) -> None:
        result = await self.db.execute(
            delete(QuoteHistory).where(QuoteHistory.quote_number == quote_number)
        )
        if not result.rowcount:
            raise QuoteNotFoundError(quote_number)
        logger.info(f"Quote {quote_number} deleted", extra={"quote_number": quote_number})
