"""Pydantic request / response schemas for the Offerten API."""
from dataclasses import asdict
from datetime import date
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from offerten.config import DEFAULT_ENGAGEMENTS, MAX_ENGAGEMENTS, MIN_ENGAGEMENTS
from offerten.models.pricing import (
    CategoryConfig,
    CategoryEntry,
    EditablePriceSet,
    ExpenseInputs,
    Overrides,
)
from offerten.services import pricing_state as ps


# ── Pricing inputs ────────────────────────────────────────────────────────────

class CategoryEntryIn(BaseModel):
    category_id: str
    title: str = ""
    count: int = Field(default=0, ge=0)

    def to_entry(self) -> CategoryEntry:
        return CategoryEntry(category_id=self.category_id, title=self.title, count=self.count)


class OverridesIn(BaseModel):
    hours_override: Optional[float] = Field(default=None, ge=0)
    binding_quantity_override: Optional[float] = Field(default=None, ge=0)

    def to_overrides(self) -> Overrides:
        return Overrides(**self.model_dump())


class ExpensesIn(BaseModel):
    kilometers: float = Field(default=0.0, ge=0)
    travel_time_hours: float = Field(default=0.0, ge=0)
    meal_count: float = Field(default=0.0, ge=0)
    overnight_count: float = Field(default=0.0, ge=0)
    engagement_count: int = Field(default=DEFAULT_ENGAGEMENTS, ge=MIN_ENGAGEMENTS, le=MAX_ENGAGEMENTS)

    def to_expenses(self) -> ExpenseInputs:
        return ExpenseInputs(**self.model_dump())


class PricesIn(BaseModel):
    basics: float = 0.0
    scheduling: float = 0.0
    survey: float = 0.0
    report: float = 0.0
    control: float = 0.0
    closing: float = 0.0
    material: float = 0.0
    expenses: float = 0.0
    subtotal: float = 0.0
    discount_pct: float = Field(default=0.0, ge=0, le=100)

    def to_prices(self) -> EditablePriceSet:
        return EditablePriceSet(**self.model_dump())


class PricingSnapshotIn(BaseModel):
    categories: List[CategoryEntryIn] = []
    overrides: OverridesIn = OverridesIn()
    expenses: ExpensesIn = ExpensesIn()
    prices: Optional[PricesIn] = None

    def to_snapshot(self) -> ps.PricingSnapshot:
        return ps.PricingSnapshot(
            entries=tuple(c.to_entry() for c in self.categories),
            overrides=self.overrides.to_overrides(),
            expenses=self.expenses.to_expenses(),
            prices=self.prices.to_prices() if self.prices is not None else None,
        )


class CalculateRequest(BaseModel):
    categories: List[CategoryEntryIn] = []
    overrides: OverridesIn = OverridesIn()
    expenses: ExpensesIn = ExpensesIn()
    discount_pct: float = Field(default=0.0, ge=0, le=100)


# ── Quotes ────────────────────────────────────────────────────────────────────

class QuoteIn(BaseModel):
    quote_date: Optional[date] = None
    project_location: Optional[str] = None
    project_designation: Optional[str] = None
    recipient_company: Optional[str] = None
    lead_time: Optional[str] = None
    pricing: PricingSnapshotIn = PricingSnapshotIn()


# ── Session events ────────────────────────────────────────────────────────────

class UpdateCategoriesIn(BaseModel):
    type: Literal["update_categories"]
    categories: List[CategoryEntryIn]

    def to_event(self):
        return ps.UpdateCategories(tuple(c.to_entry() for c in self.categories))


class SetCategoryCountIn(BaseModel):
    type: Literal["set_category_count"]
    category_id: str
    count: int = Field(ge=0)

    def to_event(self):
        return ps.SetCategoryCount(self.category_id, self.count)


class UpdateExpensesIn(BaseModel):
    type: Literal["update_expenses"]
    expenses: ExpensesIn

    def to_event(self):
        return ps.UpdateExpenses(self.expenses.to_expenses())


class EditPriceIn(BaseModel):
    type: Literal["edit_price"]
    field: str
    value: float = Field(ge=0)

    def to_event(self):
        return ps.EditPrice(self.field, self.value)


class SetHoursOverrideIn(BaseModel):
    type: Literal["set_hours_override"]
    value: Optional[float] = Field(default=None, ge=0)

    def to_event(self):
        return ps.SetHoursOverride(self.value)


class SetBindingOverrideIn(BaseModel):
    type: Literal["set_binding_override"]
    value: Optional[float] = Field(default=None, ge=0)

    def to_event(self):
        return ps.SetBindingOverride(self.value)


class SetDiscountIn(BaseModel):
    type: Literal["set_discount"]
    pct: float = Field(ge=0, le=100)

    def to_event(self):
        return ps.SetDiscount(self.pct)


class ReloadConfigIn(BaseModel):
    """Re-read categories and base rates from the configuration store."""
    type: Literal["reload_config"]


SessionEventIn = Annotated[
    Union[
        UpdateCategoriesIn,
        SetCategoryCountIn,
        UpdateExpensesIn,
        EditPriceIn,
        SetHoursOverrideIn,
        SetBindingOverrideIn,
        SetDiscountIn,
        ReloadConfigIn,
    ],
    Field(discriminator="type"),
]


class SessionEventBatch(BaseModel):
    events: List[SessionEventIn] = Field(min_length=1)


# ── Settings ──────────────────────────────────────────────────────────────────

class CategoryCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    sort_order: int = 0
    unit_time_allowance_hours: float = Field(default=0.0, ge=0)
    basics_factor: float = Field(default=1.0, ge=0)
    scheduling_factor: float = Field(default=1.0, ge=0)
    report_factor: float = Field(default=1.0, ge=0)
    control_factor: float = Field(default=1.0, ge=0)
    closing_factor: float = Field(default=1.0, ge=0)


class CategoryUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    sort_order: Optional[int] = None
    unit_time_allowance_hours: Optional[float] = Field(default=None, ge=0)
    basics_factor: Optional[float] = Field(default=None, ge=0)
    scheduling_factor: Optional[float] = Field(default=None, ge=0)
    report_factor: Optional[float] = Field(default=None, ge=0)
    control_factor: Optional[float] = Field(default=None, ge=0)
    closing_factor: Optional[float] = Field(default=None, ge=0)


class BaseRatesUpdate(BaseModel):
    hourly_rate_survey: Optional[float] = Field(default=None, ge=0)
    basics_per_object: Optional[float] = Field(default=None, ge=0)
    scheduling_per_object: Optional[float] = Field(default=None, ge=0)
    report_per_object: Optional[float] = Field(default=None, ge=0)
    control_per_object: Optional[float] = Field(default=None, ge=0)
    delivery_confirmation_per_object: Optional[float] = Field(default=None, ge=0)
    data_handover_per_object: Optional[float] = Field(default=None, ge=0)
    usb_flat_fee: Optional[float] = Field(default=None, ge=0)
    binding_unit_price: Optional[float] = Field(default=None, ge=0)
    objects_per_binding_unit: Optional[int] = Field(default=None, ge=1)
    travel_per_km: Optional[float] = Field(default=None, ge=0)
    travel_hourly_rate: Optional[float] = Field(default=None, ge=0)
    meal_unit_price: Optional[float] = Field(default=None, ge=0)
    overnight_unit_price: Optional[float] = Field(default=None, ge=0)
    engagement_flat_fee: Optional[float] = Field(default=None, ge=0)


def category_out(cfg: CategoryConfig) -> dict:
    return asdict(cfg)
