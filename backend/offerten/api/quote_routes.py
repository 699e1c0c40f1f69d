"""
Quote routes — stateless calculation, quote storage, editing sessions and
document output.

Domain errors (unknown quote, no open session, configuration unavailable) are
mapped to HTTP status codes by the handlers registered in main.py.
"""
import logging
from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from offerten.api.deps import (
    get_config_store,
    get_quote_repository,
    get_report_engine,
    get_session_registry,
)
from offerten.models.pricing import ComputedResult
from offerten.models.schemas import (
    CalculateRequest,
    QuoteIn,
    ReloadConfigIn,
    SessionEventBatch,
)
from offerten.services.config_store import ConfigStore
from offerten.services.document_payload import build_document_payload
from offerten.services.pricing_state import (
    LoadQuote,
    PricingSnapshot,
    PricingState,
    reduce,
)
from offerten.services.quote_repository import QuoteRepository
from offerten.services.quote_sessions import QuoteSessionRegistry
from offerten.services.quote_totals import calculate_totals
from offerten.services.report_engine import ReportEngine
from offerten.services.rounding import round_hours

router = APIRouter(prefix="/api/quotes", tags=["Quotes"])
logger = logging.getLogger("offerten-api")


# ─── Serialization ──────────────────────────────────────────────────────────

def _computed_out(computed: ComputedResult) -> Dict[str, Any]:
    return {
        "phases": {name: asdict(phase) for name, phase in computed.phases.items()},
        "total_object_count": computed.total_object_count,
        "subtotal": computed.subtotal,
        "survey_hours_raw": round_hours(computed.survey_hours_raw),
        "survey_hours_effective": round_hours(computed.survey_hours_effective),
        "binding_units_raw": computed.binding_units_raw,
        "binding_units_effective": computed.binding_units_effective,
        "details": dict(computed.details),
    }


def _state_out(quote_number: str, state: PricingState) -> Dict[str, Any]:
    return {
        "quote_number": quote_number,
        "phase": state.phase.value,
        **state.snapshot().to_dict(),
        "manual": sorted(state.manual),
        "computed": _computed_out(state.computed) if state.computed is not None else None,
        "totals": state.totals().as_dict(),
    }


async def _current_state(
    quote_number: str,
    repo: QuoteRepository,
    store: ConfigStore,
    sessions: QuoteSessionRegistry,
):
    """Quote record plus pricing state; an open session wins over the stored snapshot."""
    quote = await repo.get(quote_number)
    if sessions.is_open(quote_number):
        return quote, sessions.get(quote_number).state
    config = await store.load()
    snapshot = PricingSnapshot.from_dict(quote.get("pricing"))
    return quote, reduce(PricingState(), LoadQuote(snapshot), config.engine())


# ─── Stateless calculation ──────────────────────────────────────────────────

@router.post("/calculate")
async def calculate_quote(
    payload: CalculateRequest,
    store: ConfigStore = Depends(get_config_store),
):
    """One engine pass against the current configuration. Nothing is stored."""
    config = await store.load()
    computed = config.engine().calculate(
        [c.to_entry() for c in payload.categories],
        payload.overrides.to_overrides(),
        payload.expenses.to_expenses(),
    )
    return {
        "result": _computed_out(computed),
        "prices": computed.to_price_set(payload.discount_pct).as_dict(),
        "totals": calculate_totals(computed.subtotal, payload.discount_pct).as_dict(),
    }


# ─── Quote records ──────────────────────────────────────────────────────────

@router.get("")
async def list_quotes(limit: int = 100, repo: QuoteRepository = Depends(get_quote_repository)):
    """Quote history, most recently changed first."""
    return await repo.list(limit=max(1, min(limit, 500)))


@router.get("/{quote_number}")
async def get_quote(quote_number: str, repo: QuoteRepository = Depends(get_quote_repository)):
    return await repo.get(quote_number)


@router.put("/{quote_number}")
async def save_quote(
    quote_number: str,
    payload: QuoteIn,
    repo: QuoteRepository = Depends(get_quote_repository),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    """Insert or replace a quote. An open session is re-loaded from the saved pricing."""
    document = payload.model_dump(mode="json")
    snapshot = payload.pricing.to_snapshot()
    document["pricing"] = snapshot.to_dict()
    saved = await repo.save(quote_number, document)
    sessions.replace_snapshot(quote_number, snapshot)
    return saved


@router.delete("/{quote_number}")
async def delete_quote(
    quote_number: str,
    repo: QuoteRepository = Depends(get_quote_repository),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    await sessions.discard(quote_number)
    await repo.delete(quote_number)
    return {"status": "deleted", "quote_number": quote_number}


# ─── Editing sessions ───────────────────────────────────────────────────────

@router.post("/{quote_number}/session")
async def open_session(
    quote_number: str,
    repo: QuoteRepository = Depends(get_quote_repository),
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    """Open the editing session. Manual marks are re-derived from the stored prices."""
    quote = await repo.get(quote_number)
    config = await store.load()
    session = sessions.open(
        quote_number,
        config.engine(),
        PricingSnapshot.from_dict(quote.get("pricing")),
    )
    return _state_out(quote_number, session.state)


@router.post("/{quote_number}/session/events")
async def apply_session_events(
    quote_number: str,
    payload: SessionEventBatch,
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    """
    Apply events in order. Processing stops at the first rejected event;
    the events before it stay applied.
    """
    session = sessions.get(quote_number)
    for index, event in enumerate(payload.events):
        if isinstance(event, ReloadConfigIn):
            config = await store.load()
            session.reload_config(config.categories, config.base_rates)
            continue
        try:
            session.apply(event.to_event())
        except ValueError as e:
            logger.info(f"Event {index} rejected for quote {quote_number}: {e}",
                        extra={"quote_number": quote_number})
            raise HTTPException(status_code=422, detail={"event_index": index, "error": str(e)})
    return _state_out(quote_number, session.state)


@router.delete("/{quote_number}/session")
async def close_session(
    quote_number: str,
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    """Close the session after its pending write has been flushed."""
    await sessions.close(quote_number)
    return {"status": "closed", "quote_number": quote_number}


# ─── Documents ──────────────────────────────────────────────────────────────

@router.get("/{quote_number}/document")
async def get_document_payload(
    quote_number: str,
    repo: QuoteRepository = Depends(get_quote_repository),
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    quote, state = await _current_state(quote_number, repo, store, sessions)
    return build_document_payload(quote, state.prices, state.totals(), state.expenses.engagement_count)


@router.get("/{quote_number}/pdf")
async def get_price_sheet_pdf(
    quote_number: str,
    repo: QuoteRepository = Depends(get_quote_repository),
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
    report: ReportEngine = Depends(get_report_engine),
):
    quote, state = await _current_state(quote_number, repo, store, sessions)
    payload = build_document_payload(quote, state.prices, state.totals(), state.expenses.engagement_count)
    pdf = report.render_price_sheet(payload, quote=quote, entries=state.entries)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Offerte_{quote_number}.pdf"'},
    )
