"""Domain records for quote pricing — categories, rates, inputs and results."""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Dict, Optional, Tuple

from offerten.config import DEFAULT_ENGAGEMENTS

# The nine user-facing line amounts, in document order.
# German labels as printed on the quote (Kostenzusammenstellung).
PRICE_FIELDS: Tuple[str, ...] = (
    "basics",        # Grundlagenbeschaffung
    "scheduling",    # Terminorganisation
    "survey",        # Zustandsaufnahme vor Ort
    "report",        # Berichtserstellung
    "control",       # Berichtskontrolle
    "closing",       # Abschluss (Zustellbestätigung + Datenabgabe)
    "material",      # Material (USB + Bericht binden)
    "expenses",      # Spesen
    "subtotal",      # Zwischentotal
)
LINE_FIELDS: Tuple[str, ...] = PRICE_FIELDS[:-1]

PRICE_LABELS: Dict[str, str] = {
    "basics": "Grundlagenbeschaffung",
    "scheduling": "Terminorganisation",
    "survey": "Zustandsaufnahme vor Ort",
    "report": "Berichtserstellung",
    "control": "Berichtskontrolle",
    "closing": "Abschluss",
    "material": "Material",
    "expenses": "Spesen",
    "subtotal": "Zwischentotal",
}


@dataclass(frozen=True)
class CategoryConfig:
    """Chargeable object category (Kategorie) as configured by the admin."""
    id: str
    title: str
    sort_order: int = 0
    unit_time_allowance_hours: float = 0.0   # survey hours per object
    description: Optional[str] = None
    basics_factor: float = 1.0
    scheduling_factor: float = 1.0
    report_factor: float = 1.0
    control_factor: float = 1.0
    closing_factor: float = 1.0


@dataclass(frozen=True)
class BaseRates:
    """Snapshot of the base rates (Basiswerte) used for one calculation pass."""
    hourly_rate_survey: float
    basics_per_object: float
    scheduling_per_object: float
    report_per_object: float
    control_per_object: float
    delivery_confirmation_per_object: float
    data_handover_per_object: float
    usb_flat_fee: float
    binding_unit_price: float
    travel_per_km: float
    travel_hourly_rate: float
    meal_unit_price: float
    overnight_unit_price: float
    engagement_flat_fee: float = 0.0
    objects_per_binding_unit: int = 1

    @classmethod
    def from_mapping(cls, data: Dict[str, object]) -> "BaseRates":
        """Build from a dict, ignoring unknown keys. Missing required keys raise KeyError."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class CategoryEntry:
    category_id: str
    title: str
    count: int = 0


@dataclass(frozen=True)
class Overrides:
    hours_override: Optional[float] = None
    binding_quantity_override: Optional[float] = None


@dataclass(frozen=True)
class ExpenseInputs:
    kilometers: float = 0.0
    travel_time_hours: float = 0.0
    meal_count: float = 0.0
    overnight_count: float = 0.0
    engagement_count: int = DEFAULT_ENGAGEMENTS


@dataclass(frozen=True)
class PhaseResult:
    raw_quantity: float
    effective_quantity: float
    amount: float


@dataclass(frozen=True)
class ComputedResult:
    phases: Dict[str, PhaseResult]
    total_object_count: int
    subtotal: float
    survey_hours_raw: float
    survey_hours_effective: float
    binding_units_raw: float
    binding_units_effective: float
    # finalized sub-terms for audit display
    details: Dict[str, float] = field(default_factory=dict)

    def amount(self, phase: str) -> float:
        if phase == "subtotal":
            return self.subtotal
        return self.phases[phase].amount

    def to_price_set(self, discount_pct: float = 0.0) -> "EditablePriceSet":
        return EditablePriceSet(
            **{name: self.amount(name) for name in PRICE_FIELDS},
            discount_pct=discount_pct,
        )


@dataclass(frozen=True)
class EditablePriceSet:
    basics: float = 0.0
    scheduling: float = 0.0
    survey: float = 0.0
    report: float = 0.0
    control: float = 0.0
    closing: float = 0.0
    material: float = 0.0
    expenses: float = 0.0
    subtotal: float = 0.0
    discount_pct: float = 0.0

    def get(self, name: str) -> float:
        if name not in PRICE_FIELDS:
            raise ValueError(f"Unknown price field '{name}'")
        return getattr(self, name)

    def with_value(self, name: str, value: float) -> "EditablePriceSet":
        if name not in PRICE_FIELDS:
            raise ValueError(f"Unknown price field '{name}'")
        return replace(self, **{name: value})

    def line_sum(self) -> float:
        return sum(getattr(self, name) for name in LINE_FIELDS)

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
