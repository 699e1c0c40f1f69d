"""Settings routes — base rates and cost categories (admin configuration)."""
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from offerten.api.deps import get_config_store, get_session_registry
from offerten.models.schemas import BaseRatesUpdate, CategoryCreate, CategoryUpdate, category_out
from offerten.services.config_store import (
    CategoryExistsError,
    CategoryNotFoundError,
    ConfigStore,
    ConfigurationUnavailableError,
)
from offerten.services.quote_sessions import QuoteSessionRegistry

router = APIRouter(prefix="/api/settings", tags=["Settings"])
logger = logging.getLogger("offerten-api")


# ─── Helpers ────────────────────────────────────────────────────────────────

async def _push_to_sessions(store: ConfigStore, sessions: QuoteSessionRegistry) -> None:
    """Open sessions pick up configuration changes immediately."""
    if not len(sessions):
        return
    try:
        config = await store.load()
    except ConfigurationUnavailableError as e:
        logger.warning(f"Open sessions keep previous configuration: {e}")
        return
    sessions.reload_config(config.categories, config.base_rates)


# ─── Base rates ─────────────────────────────────────────────────────────────

@router.get("/base-rates")
async def get_base_rates(store: ConfigStore = Depends(get_config_store)):
    """Return the current base rates. 503 if none are configured."""
    return asdict(await store.get_base_rates())


@router.put("/base-rates")
async def upsert_base_rates(
    payload: BaseRatesUpdate,
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    """UPSERT base rates. Only the fields sent are changed."""
    updates = payload.model_dump(exclude_none=True)
    try:
        rates = await store.upsert_base_rates(updates)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    await _push_to_sessions(store, sessions)
    return {"status": "updated", "fields_updated": sorted(updates), "base_rates": asdict(rates)}


# ─── Categories ─────────────────────────────────────────────────────────────

@router.get("/categories")
async def list_categories(store: ConfigStore = Depends(get_config_store)):
    return [category_out(c) for c in await store.list_categories()]


@router.post("/categories", status_code=201)
async def create_category(
    payload: CategoryCreate,
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    try:
        cfg = await store.create_category(payload.model_dump())
    except CategoryExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    await _push_to_sessions(store, sessions)
    return category_out(cfg)


@router.put("/categories/{category_id}")
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    try:
        cfg = await store.update_category(category_id, payload.model_dump(exclude_none=True))
    except CategoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    await _push_to_sessions(store, sessions)
    return category_out(cfg)


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    store: ConfigStore = Depends(get_config_store),
    sessions: QuoteSessionRegistry = Depends(get_session_registry),
):
    """Delete a category. Open quotes drop it on their next reconciliation."""
    try:
        await store.delete_category(category_id)
    except CategoryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    await _push_to_sessions(store, sessions)
    return {"status": "deleted", "id": category_id}
