"""
conftest.py — Shared pytest fixtures for the Offerten backend test suite.

No database is required. Engine and state-machine tests are pure unit tests;
API tests run against in-memory stand-ins for the configuration store and the
quote repository, injected through FastAPI dependency overrides.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``offerten.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any offerten imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

os.environ.setdefault("LOG_FORMAT", "text")


# ---------------------------------------------------------------------------
# Configuration fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def base_rates():
    """
    Base rates used throughout the suite.

      survey 120 CHF/h, basics 50, scheduling 30, report 80, control 25 per object,
      closing 5 + 7.50 per object, USB 25 flat, binding 12.50 per unit,
      travel 0.70 CHF/km + 90 CHF/h, meal 25, overnight 150, no engagement fee.
    """
    from offerten.models.pricing import BaseRates
    return BaseRates(
        hourly_rate_survey=120.0,
        basics_per_object=50.0,
        scheduling_per_object=30.0,
        report_per_object=80.0,
        control_per_object=25.0,
        delivery_confirmation_per_object=5.0,
        data_handover_per_object=7.5,
        usb_flat_fee=25.0,
        binding_unit_price=12.5,
        travel_per_km=0.7,
        travel_hourly_rate=90.0,
        meal_unit_price=25.0,
        overnight_unit_price=150.0,
    )


@pytest.fixture(scope="session")
def categories():
    """A (EFH, 1.5 h), B (MFH, 3.0 h), C (Strassen, 0.5 h) — all factors 1."""
    from offerten.models.pricing import CategoryConfig
    return [
        CategoryConfig(id="A", title="EFH", sort_order=1, unit_time_allowance_hours=1.5),
        CategoryConfig(id="B", title="MFH", sort_order=2, unit_time_allowance_hours=3.0),
        CategoryConfig(id="C", title="Strassen", sort_order=3, unit_time_allowance_hours=0.5),
    ]


@pytest.fixture(scope="session")
def engine(base_rates, categories):
    from offerten.services.costing_engine import CostingEngine
    return CostingEngine(base_rates, categories)


@pytest.fixture
def entries():
    """Counts A=2, B=1, C=4 (7 objects, 8.0 survey hours)."""
    from offerten.models.pricing import CategoryEntry
    return (
        CategoryEntry("A", "EFH", 2),
        CategoryEntry("B", "MFH", 1),
        CategoryEntry("C", "Strassen", 4),
    )


# ---------------------------------------------------------------------------
# In-memory stand-ins for the database-backed services
# ---------------------------------------------------------------------------

class FakeConfigStore:
    """Mirrors the ConfigStore interface over plain lists."""

    def __init__(self, categories, base_rates):
        self.categories = list(categories)
        self.base_rates = base_rates

    async def list_categories(self):
        from offerten.services.category_registry import sort_categories
        return sort_categories(self.categories)

    async def get_base_rates(self):
        from offerten.services.config_store import ConfigurationUnavailableError
        if self.base_rates is None:
            raise ConfigurationUnavailableError("Base rates have not been configured")
        return self.base_rates

    async def load(self):
        from offerten.services.config_store import PricingConfig
        rates = await self.get_base_rates()
        return PricingConfig(categories=tuple(await self.list_categories()), base_rates=rates)

    async def create_category(self, values):
        from offerten.models.pricing import CategoryConfig
        from offerten.services.config_store import CategoryExistsError
        if any(c.id == values["id"] for c in self.categories):
            raise CategoryExistsError(values["id"])
        cfg = CategoryConfig(**values)
        self.categories.append(cfg)
        return cfg

    async def update_category(self, category_id, updates):
        from dataclasses import replace
        from offerten.services.config_store import CategoryNotFoundError
        for i, c in enumerate(self.categories):
            if c.id == category_id:
                self.categories[i] = replace(c, **updates)
                return self.categories[i]
        raise CategoryNotFoundError(category_id)

    async def delete_category(self, category_id):
        from offerten.services.config_store import CategoryNotFoundError
        before = len(self.categories)
        self.categories = [c for c in self.categories if c.id != category_id]
        if len(self.categories) == before:
            raise CategoryNotFoundError(category_id)

    async def upsert_base_rates(self, updates):
        from dataclasses import asdict
        from offerten.models.pricing import BaseRates
        current = asdict(self.base_rates) if self.base_rates is not None else {}
        try:
            self.base_rates = BaseRates.from_mapping({**current, **updates})
        except TypeError as e:
            raise ValueError(f"Missing base rates: {e}")
        return self.base_rates


class FakeQuoteRepository:
    """Dict-backed QuoteRepository; insertion order stands in for updated_at."""

    def __init__(self):
        self.quotes = {}

    async def get(self, quote_number):
        from offerten.services.quote_repository import QuoteNotFoundError
        if quote_number not in self.quotes:
            raise QuoteNotFoundError(quote_number)
        return dict(self.quotes[quote_number])

    async def save(self, quote_number, data):
        document = {**data, "quote_number": quote_number}
        self.quotes.pop(quote_number, None)
        self.quotes[quote_number] = document
        return document

    async def save_pricing(self, quote_number, snapshot):
        existing = dict(self.quotes.get(quote_number, {}))
        existing["pricing"] = snapshot.to_dict()
        await self.save(quote_number, existing)

    async def list(self, limit=100):
        return [
            {"quote_number": k, "project_location": v.get("project_location")}
            for k, v in reversed(list(self.quotes.items()))
        ][:limit]

    async def delete(self, quote_number):
        from offerten.services.quote_repository import QuoteNotFoundError
        if self.quotes.pop(quote_number, None) is None:
            raise QuoteNotFoundError(quote_number)


@pytest.fixture
def config_store(categories, base_rates):
    return FakeConfigStore(categories, base_rates)


@pytest.fixture
def quote_repo():
    return FakeQuoteRepository()


@pytest.fixture
def client(config_store, quote_repo):
    """
    TestClient with the in-memory store and repository. Session writes go to
    the same repository with no debounce delay.
    """
    from fastapi.testclient import TestClient
    from offerten.main import app
    from offerten.api.deps import get_config_store, get_quote_repository
    from offerten.services.persistence import PersistenceDebouncer
    from offerten.services.quote_sessions import QuoteSessionRegistry

    app.dependency_overrides[get_config_store] = lambda: config_store
    app.dependency_overrides[get_quote_repository] = lambda: quote_repo
    app.state.sessions = QuoteSessionRegistry(
        writer=quote_repo.save_pricing,
        debouncer=PersistenceDebouncer(delay=0),
    )
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        app.state.sessions = None
