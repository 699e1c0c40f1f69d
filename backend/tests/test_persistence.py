"""
test_persistence.py — debounced writes and the quote session registry.

Async code is driven with asyncio.run; no pytest plugin required.
"""

import asyncio
import logging

import pytest

from offerten.services.persistence import PersistenceDebouncer
from offerten.services.pricing_state import PricingSnapshot
from offerten.services.quote_sessions import QuoteSessionRegistry, SessionNotOpenError


class Recorder:
    def __init__(self):
        self.writes = []

    async def write(self, quote_number, snapshot):
        self.writes.append((quote_number, snapshot))


# ===========================================================================
# Debouncer
# ===========================================================================

class TestPersistenceDebouncer:

    def test_burst_collapses_to_last_write(self):
        written = []

        async def scenario():
            debouncer = PersistenceDebouncer(delay=0.05)
            for i in range(5):
                debouncer.schedule("q1", lambda i=i: _append(written, i))
            await asyncio.sleep(0.2)

        asyncio.run(scenario())
        assert written == [4]

    def test_keys_are_independent(self):
        written = []

        async def scenario():
            debouncer = PersistenceDebouncer(delay=0.01)
            debouncer.schedule("q1", lambda: _append(written, "q1"))
            debouncer.schedule("q2", lambda: _append(written, "q2"))
            await asyncio.sleep(0.1)

        asyncio.run(scenario())
        assert sorted(written) == ["q1", "q2"]

    def test_flush_writes_immediately(self):
        written = []

        async def scenario():
            debouncer = PersistenceDebouncer(delay=10)
            debouncer.schedule("q1", lambda: _append(written, "now"))
            await debouncer.flush("q1")
            assert debouncer.pending_keys == set()

        asyncio.run(scenario())
        assert written == ["now"]

    def test_cancel_drops_pending_write(self):
        written = []

        async def scenario():
            debouncer = PersistenceDebouncer(delay=0.01)
            debouncer.schedule("q1", lambda: _append(written, "x"))
            assert debouncer.cancel("q1") is True
            await asyncio.sleep(0.05)
            assert debouncer.cancel("q1") is False

        asyncio.run(scenario())
        assert written == []

    def test_release_keeps_lock_while_write_pending(self):
        async def scenario():
            debouncer = PersistenceDebouncer(delay=10)
            debouncer.schedule("q1", lambda: _append([], "x"))
            await debouncer.flush("q1")
            debouncer.schedule("q1", lambda: _append([], "y"))
            debouncer.release("q1")
            held = debouncer.locked_keys
            debouncer.cancel("q1")
            debouncer.release("q1")
            return held, debouncer.locked_keys

        held, after = asyncio.run(scenario())
        assert held == {"q1"}
        assert after == set()

    def test_failure_is_logged_not_raised(self, caplog):
        async def boom():
            raise RuntimeError("database gone")

        async def scenario():
            debouncer = PersistenceDebouncer(delay=0)
            debouncer.schedule("q1", boom)
            await debouncer.flush_all()

        with caplog.at_level(logging.ERROR, logger="offerten-persistence"):
            asyncio.run(scenario())
        assert "Persisting quote q1 failed" in caplog.text
        assert "database gone" in caplog.text


async def _append(target, value):
    target.append(value)


# ===========================================================================
# Session registry
# ===========================================================================

class TestQuoteSessionRegistry:

    def test_open_does_not_write(self, engine, entries):
        recorder = Recorder()

        async def scenario():
            registry = QuoteSessionRegistry(recorder.write, PersistenceDebouncer(delay=0))
            registry.open("25.1.1", engine, PricingSnapshot(entries=entries))
            await registry.close_all()

        asyncio.run(scenario())
        assert recorder.writes == []

    def test_edits_persist_latest_snapshot_on_close(self, engine, entries):
        recorder = Recorder()

        async def scenario():
            registry = QuoteSessionRegistry(recorder.write, PersistenceDebouncer(delay=5))
            session = registry.open("25.1.1", engine, PricingSnapshot(entries=entries))
            session.edit_price("survey", 1000)
            session.set_discount(5)
            await registry.close("25.1.1")
            assert not registry.is_open("25.1.1")

        asyncio.run(scenario())
        assert len(recorder.writes) == 1
        quote_number, snapshot = recorder.writes[0]
        assert quote_number == "25.1.1"
        assert snapshot.prices.survey == 1000.0
        assert snapshot.prices.discount_pct == 5

    def test_in_memory_state_survives_write_failure(self, engine, entries):
        async def failing(quote_number, snapshot):
            raise OSError("disk full")

        async def scenario():
            registry = QuoteSessionRegistry(failing, PersistenceDebouncer(delay=0))
            session = registry.open("25.1.1", engine, PricingSnapshot(entries=entries))
            session.edit_price("report", 1)
            await registry.debouncer.flush_all()
            return session.state

        state = asyncio.run(scenario())
        assert state.prices.report == 1.0
        assert "report" in state.manual

    def test_reopen_returns_same_session(self, engine, entries):
        async def scenario():
            registry = QuoteSessionRegistry(Recorder().write, PersistenceDebouncer(delay=0))
            first = registry.open("25.1.1", engine, PricingSnapshot(entries=entries))
            second = registry.open("25.1.1", engine)
            return first is second, len(registry)

        assert asyncio.run(scenario()) == (True, 1)

    def test_get_unknown_session(self):
        registry = QuoteSessionRegistry(Recorder().write)
        with pytest.raises(SessionNotOpenError):
            registry.get("nope")

    def test_discard_drops_pending_write(self, engine, entries):
        recorder = Recorder()

        async def scenario():
            registry = QuoteSessionRegistry(recorder.write, PersistenceDebouncer(delay=5))
            session = registry.open("25.1.1", engine, PricingSnapshot(entries=entries))
            session.edit_price("survey", 10)
            await registry.discard("25.1.1")

        asyncio.run(scenario())
        assert recorder.writes == []

    def test_closed_sessions_leave_no_locks_behind(self, engine, entries):
        async def scenario():
            registry = QuoteSessionRegistry(Recorder().write, PersistenceDebouncer(delay=5))
            for number in ("25.1.1", "25.1.2", "25.1.3"):
                registry.open(number, engine, PricingSnapshot(entries=entries)).edit_price("survey", 10)
            await registry.close("25.1.1")
            await registry.discard("25.1.2")
            await registry.close_all()
            return registry.debouncer.locked_keys

        assert asyncio.run(scenario()) == set()
