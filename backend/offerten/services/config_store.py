"""
Configuration store — loads cost categories and base rates from the database.

There is no fallback: if the base rates cannot be read the caller gets a
ConfigurationUnavailableError. Pricing a quote with stale or default rates
would silently misprice it.
"""
import logging
from dataclasses import MISSING, dataclass, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from offerten.models.orm_models import CostBaseRates, CostCategory
from offerten.models.pricing import BaseRates, CategoryConfig
from offerten.services.category_registry import sort_categories
from offerten.services.costing_engine import CostingEngine

logger = logging.getLogger("offerten-config")

_RATE_FIELDS = tuple(f.name for f in fields(BaseRates))
REQUIRED_RATE_FIELDS = tuple(
    f.name for f in fields(BaseRates) if f.default is MISSING
)


class ConfigurationUnavailableError(RuntimeError):
    """Raised when categories or base rates cannot be loaded."""


class CategoryNotFoundError(LookupError):
    def __init__(self, category_id: str):
        super().__init__(f"Category '{category_id}' not found")
        self.category_id = category_id


class CategoryExistsError(ValueError):
    def __init__(self, category_id: str):
        super().__init__(f"Category '{category_id}' already exists")
        self.category_id = category_id


@dataclass(frozen=True)
class PricingConfig:
    categories: Tuple[CategoryConfig, ...]
    base_rates: BaseRates

    def engine(self) -> CostingEngine:
        return CostingEngine(self.base_rates, self.categories)


def category_from_row(row: CostCategory) -> CategoryConfig:
    return CategoryConfig(
        id=row.category_id,
        title=row.title,
        sort_order=int(row.sort_order or 0),
        unit_time_allowance_hours=float(row.unit_time_allowance_hours or 0),
        description=row.description,
        basics_factor=float(row.basics_factor if row.basics_factor is not None else 1),
        scheduling_factor=float(row.scheduling_factor if row.scheduling_factor is not None else 1),
        report_factor=float(row.report_factor if row.report_factor is not None else 1),
        control_factor=float(row.control_factor if row.control_factor is not None else 1),
        closing_factor=float(row.closing_factor if row.closing_factor is not None else 1),
    )


def rates_from_row(row: CostBaseRates) -> BaseRates:
    values = {}
    for name in _RATE_FIELDS:
        raw = getattr(row, name)
        if raw is None:
            raise ConfigurationUnavailableError(f"Base rate '{name}' is not configured")
        values[name] = int(raw) if name == "objects_per_binding_unit" else float(raw)
    return BaseRates(**values)


class ConfigStore:
    """Read access to the pricing configuration for one request."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_categories(self) -> List[CategoryConfig]:
        result = await self.db.execute(
            select(CostCategory).order_by(CostCategory.sort_order, CostCategory.seq)
        )
        return sort_categories(category_from_row(r) for r in result.scalars().all())

    async def get_base_rates(self) -> BaseRates:
        result = await self.db.execute(select(CostBaseRates).where(CostBaseRates.id == 1))
        row = result.scalar_one_or_none()
        if row is None:
            raise ConfigurationUnavailableError("Base rates have not been configured")
        return rates_from_row(row)

    async def load(self) -> PricingConfig:
        try:
            categories = await self.list_categories()
            rates = await self.get_base_rates()
        except SQLAlchemyError as e:
            logger.error(f"Configuration store unavailable: {e}")
            raise ConfigurationUnavailableError("Configuration store unavailable") from e
        except OSError as e:
            logger.error(f"Configuration store unreachable: {e}")
            raise ConfigurationUnavailableError("Configuration store unreachable") from e
        if not categories:
            logger.warning("No cost categories configured — quotes will price to zero")
        return PricingConfig(categories=tuple(categories), base_rates=rates)

    # ── Admin writes ──────────────────────────────────────────────────────────

    async def _category_row(self, category_id: str) -> Optional[CostCategory]:
        result = await self.db.execute(
            select(CostCategory).where(CostCategory.category_id == category_id)
        )
        return result.scalar_one_or_none()

    async def create_category(self, values: Dict[str, Any]) -> CategoryConfig:
        category_id = values["id"]
        if await self._category_row(category_id) is not None:
            raise CategoryExistsError(category_id)
        row = CostCategory(category_id=category_id)
        for field, value in values.items():
            if field != "id":
                setattr(row, field, value)
        self.db.add(row)
        await self.db.flush()
        logger.info(f"Category '{category_id}' created")
        return category_from_row(row)

    async def update_category(self, category_id: str, updates: Dict[str, Any]) -> CategoryConfig:
        row = await self._category_row(category_id)
        if row is None:
            raise CategoryNotFoundError(category_id)
        for field, value in updates.items():
            setattr(row, field, value)
        await self.db.flush()
        return category_from_row(row)

    async def delete_category(self, category_id: str) -> None:
        row = await self._category_row(category_id)
        if row is None:
            raise CategoryNotFoundError(category_id)
        await self.db.delete(row)
        await self.db.flush()
        logger.info(f"Category '{category_id}' deleted")

    async def upsert_base_rates(self, updates: Dict[str, Any]) -> BaseRates:
        """
        Apply partial updates to the single base-rates row. Creating the row
        requires every rate without a default.
        """
        result = await self.db.execute(select(CostBaseRates).where(CostBaseRates.id == 1))
        row = result.scalar_one_or_none()
        if row is None:
            missing = [name for name in REQUIRED_RATE_FIELDS if updates.get(name) is None]
            if missing:
                raise ValueError(f"Missing base rates: {', '.join(missing)}")
            row = CostBaseRates(id=1, engagement_flat_fee=0, objects_per_binding_unit=1)
            self.db.add(row)
        for field, value in updates.items():
            setattr(row, field, value)
        await self.db.flush()
        logger.info(f"Base rates updated: {sorted(updates)}")
        return rates_from_row(row)


def static_config(categories: Sequence[CategoryConfig], base_rates: BaseRates) -> PricingConfig:
    """Build a PricingConfig from in-memory values (imports, scripts, tests)."""
    return PricingConfig(categories=tuple(sort_categories(categories)), base_rates=base_rates)
