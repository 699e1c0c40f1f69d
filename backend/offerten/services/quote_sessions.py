"""
Registry of open quote editing sessions.

One PricingSession per quote number, kept in process memory. Changes are
handed to the PersistenceDebouncer which writes the pricing snapshot back to
the quote record.
"""
import logging
from typing import Awaitable, Callable, Dict, Optional, Sequence

from offerten.db import AsyncSessionLocal
from offerten.models.pricing import BaseRates, CategoryConfig
from offerten.services.costing_engine import CostingEngine
from offerten.services.persistence import PersistenceDebouncer
from offerten.services.pricing_state import PricingSession, PricingSnapshot
from offerten.services.quote_repository import QuoteRepository

logger = logging.getLogger("offerten-sessions")

SnapshotWriter = Callable[[str, PricingSnapshot], Awaitable[None]]


class SessionNotOpenError(LookupError):
    def __init__(self, quote_number: str):
        super().__init__(f"No open pricing session for quote '{quote_number}'")
        self.quote_number = quote_number


async def write_snapshot(quote_number: str, snapshot: PricingSnapshot) -> None:
    """Default writer: store the snapshot in its own database transaction."""
    async with AsyncSessionLocal() as db:
        await QuoteRepository(db).save_pricing(quote_number, snapshot)
        await db.commit()


class QuoteSessionRegistry:
    def __init__(
        self,
        writer: SnapshotWriter = write_snapshot,
        debouncer: Optional[PersistenceDebouncer] = None,
    ) -> None:
        self.writer = writer
        self.debouncer = debouncer or PersistenceDebouncer()
        self._sessions: Dict[str, PricingSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def is_open(self, quote_number: str) -> bool:
        return quote_number in self._sessions

    def _on_change(self, quote_number: str, snapshot: PricingSnapshot) -> None:
        self.debouncer.schedule(quote_number, lambda: self.writer(quote_number, snapshot))

    def open(
        self,
        quote_number: str,
        engine: CostingEngine,
        snapshot: Optional[PricingSnapshot] = None,
    ) -> PricingSession:
        """
        Open (or re-attach to) the session for ``quote_number``.

        A fresh session is loaded from ``snapshot`` without scheduling a write.
        An already open session keeps its state and only picks up ``engine``'s
        configuration.
        """
        session = self._sessions.get(quote_number)
        if session is not None:
            session.reload_config(list(engine.categories.values()), engine.rates)
            return session

        session = PricingSession(quote_number=quote_number, engine=engine)
        session.load(snapshot)
        session.on_change = self._on_change
        self._sessions[quote_number] = session
        logger.info(
            f"Session opened for quote {quote_number} ({session.state.phase.value})",
            extra={"quote_number": quote_number},
        )
        return session

    def get(self, quote_number: str) -> PricingSession:
        session = self._sessions.get(quote_number)
        if session is None:
            raise SessionNotOpenError(quote_number)
        return session

    def replace_snapshot(self, quote_number: str, snapshot: PricingSnapshot) -> Optional[PricingSession]:
        """
        Re-load an open session from a snapshot that was just saved directly.
        Returns None when no session is open for the quote.
        """
        session = self._sessions.get(quote_number)
        if session is None:
            return None
        self.debouncer.cancel(quote_number)
        session.on_change = None
        try:
            session.load(snapshot)
        finally:
            session.on_change = self._on_change
        return session

    def reload_config(self, categories: Sequence[CategoryConfig], base_rates: BaseRates) -> None:
        """Push changed configuration into every open session."""
        for session in self._sessions.values():
            session.reload_config(categories, base_rates)

    async def close(self, quote_number: str) -> None:
        if quote_number not in self._sessions:
            raise SessionNotOpenError(quote_number)
        await self.debouncer.flush(quote_number)
        del self._sessions[quote_number]
        self.debouncer.release(quote_number)
        logger.info(f"Session closed for quote {quote_number}", extra={"quote_number": quote_number})

    async def discard(self, quote_number: str) -> None:
        """Drop a session and its pending write (the quote is being deleted)."""
        self.debouncer.cancel(quote_number)
        # a write already in flight still has to finish before the delete
        await self.debouncer.flush(quote_number)
        self._sessions.pop(quote_number, None)
        self.debouncer.release(quote_number)

    async def close_all(self) -> None:
        await self.debouncer.flush_all()
        count = len(self._sessions)
        for quote_number in self._sessions:
            self.debouncer.release(quote_number)
        self._sessions.clear()
        if count:
            logger.info(f"Closed {count} open quote session(s)")
