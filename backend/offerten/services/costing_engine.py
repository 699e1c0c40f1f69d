"""
CostingEngine — cost calculation for building-inspection quotes (Offerten).

Covers:
  - Object-count-scaled phases (Grundlagen, Termin, Bericht, Kontrolle, Abschluss)
  - Survey phase (Zustandsaufnahme) from per-category time allowances and hourly rate
  - Material (USB flat fee + report binding) with binding quantity override
  - Expenses (Spesen): travel km / time, meals, overnights, engagement flat fee
  - Subtotal rollup

Every monetary amount is rounded to 0.05 CHF at the point it is finalized.
The engine is pure: no I/O, no mutation, never raises on numeric input (clamps).
"""
import logging
import math
from typing import Any, Dict, Iterable, Optional, Sequence

from offerten.config import MAX_ENGAGEMENTS, MIN_ENGAGEMENTS
from offerten.models.pricing import (
    BaseRates,
    CategoryConfig,
    CategoryEntry,
    ComputedResult,
    ExpenseInputs,
    LINE_FIELDS,
    Overrides,
    PhaseResult,
)
from offerten.services.rounding import round5

logger = logging.getLogger("offerten-engine")


# ---------------------------------------------------------------------------
# Input sanitation
# ---------------------------------------------------------------------------

def non_negative(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def as_count(value: Any) -> int:
    return int(non_negative(value))


def as_override(value: Any) -> Optional[float]:
    """Negative, non-numeric or missing override means 'no override'."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return number


def clamp_engagements(value: Any) -> int:
    return min(MAX_ENGAGEMENTS, max(MIN_ENGAGEMENTS, as_count(value)))


class CostingEngine:
    """
    Pricing engine bound to one snapshot of base rates and category config.

    All monetary values are in CHF.
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(self, base_rates: BaseRates, categories: Sequence[CategoryConfig]) -> None:
        self.rates = base_rates
        self.categories: Dict[str, CategoryConfig] = {c.id: c for c in categories}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _matched(self, entries: Iterable[CategoryEntry]):
        """Yield (count, config) for entries that have a configured category."""
        for entry in entries:
            cfg = self.categories.get(entry.category_id)
            if cfg is None:
                logger.debug(f"Ignoring entry for unconfigured category '{entry.category_id}'")
                continue
            yield as_count(entry.count), cfg

    def _scaled_phase(self, matched, factor_attr: str, per_object: float) -> PhaseResult:
        units = sum(count * non_negative(getattr(cfg, factor_attr)) for count, cfg in matched)
        return PhaseResult(
            raw_quantity=units,
            effective_quantity=units,
            amount=round5(units * non_negative(per_object)),
        )

    # ------------------------------------------------------------------
    # 1. Survey (Zustandsaufnahme vor Ort)
    # ------------------------------------------------------------------

    def survey_amount(self, hours: float) -> float:
        """round5(hours × survey hourly rate)."""
        return round5(non_negative(hours) * non_negative(self.rates.hourly_rate_survey))

    def calculate_survey(self, matched, hours_override: Optional[float]) -> PhaseResult:
        raw_hours = sum(count * non_negative(cfg.unit_time_allowance_hours) for count, cfg in matched)
        effective = hours_override if hours_override is not None else raw_hours
        return PhaseResult(
            raw_quantity=raw_hours,
            effective_quantity=effective,
            amount=self.survey_amount(effective),
        )

    # ------------------------------------------------------------------
    # 2. Material (USB + Bericht binden)
    # ------------------------------------------------------------------

    def standard_binding_units(self, total_objects: int) -> int:
        per_unit = max(1, as_count(self.rates.objects_per_binding_unit))
        return math.ceil(total_objects / per_unit)

    def material_breakdown(self, total_objects: int, binding_units: float) -> Dict[str, float]:
        """
        USB flat fee is charged once per quote, and only if there is at least
        one object. Binding = units × unit price.
        """
        usb = round5(non_negative(self.rates.usb_flat_fee)) if total_objects > 0 else 0.0
        binding = round5(non_negative(binding_units) * non_negative(self.rates.binding_unit_price))
        return {"usb": usb, "binding": binding, "material": round5(usb + binding)}

    def calculate_material(self, total_objects: int, binding_override: Optional[float]) -> PhaseResult:
        raw_units = self.standard_binding_units(total_objects)
        effective = binding_override if binding_override is not None else raw_units
        return PhaseResult(
            raw_quantity=raw_units,
            effective_quantity=effective,
            amount=self.material_breakdown(total_objects, effective)["material"],
        )

    # ------------------------------------------------------------------
    # 3. Expenses (Spesen)
    # ------------------------------------------------------------------

    def expense_terms(self, expenses: ExpenseInputs, total_objects: int) -> Dict[str, float]:
        """Each term rounded to 0.05 before summation."""
        r = self.rates
        engagement_fee = 0.0
        if total_objects > 0:
            engagement_fee = round5(
                clamp_engagements(expenses.engagement_count) * non_negative(r.engagement_flat_fee)
            )
        return {
            "travel_km": round5(non_negative(expenses.kilometers) * non_negative(r.travel_per_km)),
            "travel_time": round5(
                non_negative(expenses.travel_time_hours) * non_negative(r.travel_hourly_rate)
            ),
            "meals": round5(non_negative(expenses.meal_count) * non_negative(r.meal_unit_price)),
            "overnights": round5(
                non_negative(expenses.overnight_count) * non_negative(r.overnight_unit_price)
            ),
            "engagements": engagement_fee,
        }

    # ------------------------------------------------------------------
    # 4. Full calculation
    # ------------------------------------------------------------------

    def calculate(
        self,
        entries: Sequence[CategoryEntry],
        overrides: Optional[Overrides] = None,
        expenses: Optional[ExpenseInputs] = None,
    ) -> ComputedResult:
        overrides = overrides or Overrides()
        expenses = expenses or ExpenseInputs()
        r = self.rates

        matched = list(self._matched(entries))
        total_objects = sum(count for count, _ in matched)

        phases: Dict[str, PhaseResult] = {
            "basics": self._scaled_phase(matched, "basics_factor", r.basics_per_object),
            "scheduling": self._scaled_phase(matched, "scheduling_factor", r.scheduling_per_object),
            "survey": self.calculate_survey(matched, as_override(overrides.hours_override)),
            "report": self._scaled_phase(matched, "report_factor", r.report_per_object),
            "control": self._scaled_phase(matched, "control_factor", r.control_per_object),
        }

        # Abschluss = Zustellbestätigung + Datenabgabe, each finalized separately
        delivery = self._scaled_phase(matched, "closing_factor", r.delivery_confirmation_per_object)
        handover = self._scaled_phase(matched, "closing_factor", r.data_handover_per_object)
        phases["closing"] = PhaseResult(
            raw_quantity=delivery.raw_quantity,
            effective_quantity=delivery.effective_quantity,
            amount=round5(delivery.amount + handover.amount),
        )

        binding_override = as_override(overrides.binding_quantity_override)
        phases["material"] = self.calculate_material(total_objects, binding_override)
        material_parts = self.material_breakdown(
            total_objects, phases["material"].effective_quantity
        )

        # Spesen has no quantity of its own; the quantity columns carry the term sum
        terms = self.expense_terms(expenses, total_objects)
        terms_total = sum(terms.values())
        phases["expenses"] = PhaseResult(
            raw_quantity=terms_total,
            effective_quantity=terms_total,
            amount=round5(terms_total),
        )

        subtotal = round5(sum(phases[name].amount for name in LINE_FIELDS))

        details = {
            "delivery_confirmation": delivery.amount,
            "data_handover": handover.amount,
            "usb": material_parts["usb"],
            "binding": material_parts["binding"],
            **{f"expenses_{k}": v for k, v in terms.items()},
        }

        return ComputedResult(
            phases=phases,
            total_object_count=total_objects,
            subtotal=subtotal,
            survey_hours_raw=phases["survey"].raw_quantity,
            survey_hours_effective=phases["survey"].effective_quantity,
            binding_units_raw=phases["material"].raw_quantity,
            binding_units_effective=phases["material"].effective_quantity,
            details=details,
        )


def compute(
    entries: Sequence[CategoryEntry],
    categories: Sequence[CategoryConfig],
    base_rates: BaseRates,
    overrides: Optional[Overrides] = None,
    expenses: Optional[ExpenseInputs] = None,
) -> ComputedResult:
    """Functional entry point: one pure calculation pass."""
    return CostingEngine(base_rates, categories).calculate(entries, overrides, expenses)
