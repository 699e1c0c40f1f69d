"""
Pricing state machine for one open quote.

State transitions are computed by the pure reducer ``reduce(state, event,
engine)``; ``PricingSession`` owns the current state of one quote and notifies
a persistence callback after every change. The manual-edit set is a derived
cache: on load it is rebuilt by comparing persisted prices with a fresh
calculation, it is never read back from storage.

    UNINITIALIZED ──LoadQuote──▶ COMPUTED ──EditPrice / Set*Override──▶ EDITED
                                    ▲                                     │
                                    └──── categories / expenses change ───┘
"""
import logging
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional, Sequence, Tuple, Union

from offerten.models.pricing import (
    BaseRates,
    CategoryConfig,
    CategoryEntry,
    ComputedResult,
    EditablePriceSet,
    ExpenseInputs,
    Overrides,
    PRICE_FIELDS,
)
from offerten.services.category_registry import reconcile_entries, structure_key
from offerten.services.costing_engine import (
    CostingEngine,
    as_count,
    non_negative,
    as_override,
    clamp_engagements,
)
from offerten.services.quote_totals import QuoteTotals, calculate_totals, clamp_discount
from offerten.services.rounding import differs, round5

logger = logging.getLogger("offerten-engine")


class PricingPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    COMPUTED = "computed"
    EDITED = "edited"


# ---------------------------------------------------------------------------
# Persisted projection
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PricingSnapshot:
    """What gets stored with a quote. The manual-edit set is not part of it."""
    entries: Tuple[CategoryEntry, ...] = ()
    overrides: Overrides = Overrides()
    expenses: ExpenseInputs = ExpenseInputs()
    prices: Optional[EditablePriceSet] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [asdict(e) for e in self.entries],
            "overrides": asdict(self.overrides),
            "expenses": asdict(self.expenses),
            "prices": self.prices.as_dict() if self.prices is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PricingSnapshot":
        data = data or {}
        entries = tuple(
            CategoryEntry(
                category_id=str(e.get("category_id", "")),
                title=str(e.get("title", "")),
                count=as_count(e.get("count", 0)),
            )
            for e in data.get("categories") or []
        )
        ov = data.get("overrides") or {}
        ex = data.get("expenses") or {}
        prices = data.get("prices")
        return cls(
            entries=entries,
            overrides=Overrides(
                hours_override=as_override(ov.get("hours_override")),
                binding_quantity_override=as_override(ov.get("binding_quantity_override")),
            ),
            expenses=normalize_expenses(ExpenseInputs(**{
                k: v for k, v in ex.items() if k in ExpenseInputs.__dataclass_fields__
            })),
            prices=EditablePriceSet(**{
                k: float(v) for k, v in prices.items()
                if k in EditablePriceSet.__dataclass_fields__ and v is not None
            }) if prices else None,
        )


# ---------------------------------------------------------------------------
# State & events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PricingState:
    phase: PricingPhase = PricingPhase.UNINITIALIZED
    entries: Tuple[CategoryEntry, ...] = ()
    expenses: ExpenseInputs = ExpenseInputs()
    overrides: Overrides = Overrides()
    prices: EditablePriceSet = EditablePriceSet()
    manual: FrozenSet[str] = frozenset()
    computed: Optional[ComputedResult] = None

    def snapshot(self) -> PricingSnapshot:
        return PricingSnapshot(
            entries=self.entries,
            overrides=self.overrides,
            expenses=self.expenses,
            prices=self.prices,
        )

    def totals(self) -> QuoteTotals:
        return calculate_totals(self.prices.subtotal, self.prices.discount_pct)


@dataclass(frozen=True)
class LoadQuote:
    snapshot: Optional[PricingSnapshot] = None


@dataclass(frozen=True)
class UpdateCategories:
    entries: Tuple[CategoryEntry, ...]


@dataclass(frozen=True)
class SetCategoryCount:
    category_id: str
    count: int


@dataclass(frozen=True)
class UpdateExpenses:
    expenses: ExpenseInputs


@dataclass(frozen=True)
class EditPrice:
    field: str
    value: float


@dataclass(frozen=True)
class SetHoursOverride:
    value: Optional[float]


@dataclass(frozen=True)
class SetBindingOverride:
    value: Optional[float]


@dataclass(frozen=True)
class SetDiscount:
    pct: float


PricingEvent = Union[
    LoadQuote, UpdateCategories, SetCategoryCount, UpdateExpenses,
    EditPrice, SetHoursOverride, SetBindingOverride, SetDiscount,
]


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def normalize_expenses(expenses: ExpenseInputs) -> ExpenseInputs:
    return ExpenseInputs(
        kilometers=non_negative(expenses.kilometers),
        travel_time_hours=non_negative(expenses.travel_time_hours),
        meal_count=non_negative(expenses.meal_count),
        overnight_count=non_negative(expenses.overnight_count),
        engagement_count=clamp_engagements(expenses.engagement_count),
    )


def _normalize_entries(
    entries: Sequence[CategoryEntry], engine: CostingEngine
) -> Tuple[CategoryEntry, ...]:
    sanitized = [replace(e, count=as_count(e.count)) for e in entries]
    return tuple(reconcile_entries(sanitized, list(engine.categories.values())))


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def _reset(
    state: PricingState,
    engine: CostingEngine,
    entries: Tuple[CategoryEntry, ...],
    expenses: ExpenseInputs,
) -> PricingState:
    """Structural reset: fresh prices, no manual marks, no overrides."""
    overrides = Overrides()
    computed = engine.calculate(entries, overrides, expenses)
    return replace(
        state,
        phase=PricingPhase.COMPUTED,
        entries=entries,
        expenses=expenses,
        overrides=overrides,
        prices=computed.to_price_set(discount_pct=state.prices.discount_pct),
        manual=frozenset(),
        computed=computed,
    )


def _load(state: PricingState, event: LoadQuote, engine: CostingEngine) -> PricingState:
    snap = event.snapshot or PricingSnapshot()
    entries = _normalize_entries(snap.entries, engine)
    expenses = normalize_expenses(snap.expenses)

    if snap.prices is None:
        return _reset(PricingState(), engine, entries, expenses)

    overrides = Overrides(
        hours_override=as_override(snap.overrides.hours_override),
        binding_quantity_override=as_override(snap.overrides.binding_quantity_override),
    )
    computed = engine.calculate(entries, overrides, expenses)
    manual = frozenset(
        name for name in PRICE_FIELDS if differs(snap.prices.get(name), computed.amount(name))
    )
    return PricingState(
        phase=PricingPhase.EDITED if manual else PricingPhase.COMPUTED,
        entries=entries,
        expenses=expenses,
        overrides=overrides,
        prices=replace(snap.prices, discount_pct=clamp_discount(snap.prices.discount_pct)),
        manual=manual,
        computed=computed,
    )


def _with_line(state: PricingState, name: str, value: float, **changes: Any) -> PricingState:
    """Write one line amount, re-derive the subtotal and mark what changed."""
    prices = state.prices.with_value(name, value)
    manual = set(state.manual) | {name}
    if name != "subtotal":
        subtotal = round5(prices.line_sum())
        if differs(subtotal, state.prices.subtotal):
            manual.add("subtotal")
        prices = prices.with_value("subtotal", subtotal)
    return replace(
        state,
        phase=PricingPhase.EDITED,
        prices=prices,
        manual=frozenset(manual),
        **changes,
    )


def reduce(state: PricingState, event: PricingEvent, engine: CostingEngine) -> PricingState:
    """Compute the next pricing state. Pure: neither argument is mutated."""
    if isinstance(event, LoadQuote):
        return _load(state, event, engine)

    if state.phase is PricingPhase.UNINITIALIZED:
        raise ValueError("Pricing state is not initialized; load the quote first")

    if isinstance(event, UpdateCategories):
        entries = _normalize_entries(event.entries, engine)
        if structure_key(entries) == structure_key(state.entries):
            # titles may have been refreshed; prices stay
            return replace(state, entries=entries)
        return _reset(state, engine, entries, state.expenses)

    if isinstance(event, SetCategoryCount):
        if event.category_id not in engine.categories:
            raise ValueError(f"Unknown category '{event.category_id}'")
        entries = tuple(
            replace(e, count=as_count(event.count)) if e.category_id == event.category_id else e
            for e in state.entries
        )
        return reduce(state, UpdateCategories(entries), engine)

    if isinstance(event, UpdateExpenses):
        expenses = normalize_expenses(event.expenses)
        if expenses == state.expenses:
            return state
        return _reset(state, engine, state.entries, expenses)

    if isinstance(event, EditPrice):
        if event.field not in PRICE_FIELDS:
            raise ValueError(f"Unknown price field '{event.field}'")
        return _with_line(state, event.field, round5(non_negative(event.value)))

    if isinstance(event, SetHoursOverride):
        hours = as_override(event.value)
        overrides = replace(state.overrides, hours_override=hours)
        if hours is None:
            return replace(state, overrides=overrides)
        return _with_line(state, "survey", engine.survey_amount(hours), overrides=overrides)

    if isinstance(event, SetBindingOverride):
        units = as_override(event.value)
        overrides = replace(state.overrides, binding_quantity_override=units)
        if units is None:
            return replace(state, overrides=overrides)
        total_objects = sum(e.count for e in state.entries if e.category_id in engine.categories)
        material = engine.material_breakdown(total_objects, units)["material"]
        return _with_line(state, "material", material, overrides=overrides)

    if isinstance(event, SetDiscount):
        return replace(state, prices=replace(state.prices, discount_pct=clamp_discount(event.pct)))

    raise ValueError(f"Unsupported pricing event: {type(event).__name__}")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

ChangeListener = Callable[[str, PricingSnapshot], None]


@dataclass
class PricingSession:
    """
    Owns the pricing state of one open quote.

    The in-memory state is updated synchronously on every event; the
    ``on_change`` listener (usually a debounced writer) receives the persisted
    projection after each change.
    """
    quote_number: str
    engine: CostingEngine
    on_change: Optional[ChangeListener] = None
    state: PricingState = field(default_factory=PricingState)

    def apply(self, event: PricingEvent) -> PricingState:
        new_state = reduce(self.state, event, self.engine)
        if new_state != self.state:
            self.state = new_state
            logger.debug(
                f"Quote {self.quote_number}: {type(event).__name__} -> {new_state.phase.value}",
                extra={"quote_number": self.quote_number},
            )
            if self.on_change is not None:
                self.on_change(self.quote_number, new_state.snapshot())
        return self.state

    # Convenience wrappers ---------------------------------------------------

    def load(self, snapshot: Optional[PricingSnapshot] = None) -> PricingState:
        return self.apply(LoadQuote(snapshot))

    def set_category_count(self, category_id: str, count: int) -> PricingState:
        return self.apply(SetCategoryCount(category_id, count))

    def update_expenses(self, expenses: ExpenseInputs) -> PricingState:
        return self.apply(UpdateExpenses(expenses))

    def edit_price(self, name: str, value: float) -> PricingState:
        return self.apply(EditPrice(name, value))

    def set_hours_override(self, value: Optional[float]) -> PricingState:
        return self.apply(SetHoursOverride(value))

    def set_binding_override(self, value: Optional[float]) -> PricingState:
        return self.apply(SetBindingOverride(value))

    def set_discount(self, pct: float) -> PricingState:
        return self.apply(SetDiscount(pct))

    def reload_config(self, categories: Sequence[CategoryConfig], base_rates: BaseRates) -> PricingState:
        """Swap in fresh configuration and reconcile the category entries."""
        self.engine = CostingEngine(base_rates, categories)
        if self.state.phase is PricingPhase.UNINITIALIZED:
            return self.state
        return self.apply(UpdateCategories(self.state.entries))

    def snapshot(self) -> PricingSnapshot:
        return self.state.snapshot()

    def totals(self) -> QuoteTotals:
        return self.state.totals()
