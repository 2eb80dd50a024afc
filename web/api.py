from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

from core.calculator import calculate_quote
from core.config import settings
from core.errors import StoreError
from core.models import CountertopMaterial, DraftStatus, FlooringMaterial, PricingInput, QuoteDraft, QuoteResult, Tier
from core.pricebook import Pricebook, default_pricebook
from core.store import QuoteStore, build_store, find_stale_drafts
from core.wizard import KioskWizard, Outcome, Step, WizardEvent
from web.sessions import SessionRegistry

logger = logging.getLogger(__name__)

app = FastAPI(title="Kiosk Quote Builder API", version="1.0.0")

# kiosk screens are served from another origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- DEPENDENCIES ----------

_store: Optional[QuoteStore] = None
_sessions = SessionRegistry(timedelta(minutes=settings.session_ttl_minutes))


def get_store() -> QuoteStore:
    global _store
    if _store is None:
        _store = build_store(settings)
    return _store


def get_sessions() -> SessionRegistry:
    return _sessions


def get_pricebook() -> Pricebook:
    return default_pricebook()


def _session(sid: str, sessions: SessionRegistry) -> KioskWizard:
    wizard = sessions.get(sid)
    if wizard is None:
        raise HTTPException(status_code=404, detail=f"Unknown kiosk session '{sid}'")
    return wizard


# ---------- SCHEMAS ----------

class EstimateRequest(BaseModel):
    """Pricing-only request. Sizes may be omitted when a preset is given."""

    length_ft: Optional[float] = None
    width_ft: Optional[float] = None
    cabinet_lf: Optional[float] = None
    countertop_lf: Optional[float] = None

    tier: Tier = "BETTER"
    countertop_material: CountertopMaterial = "QUARTZ"
    flooring_material: FlooringMaterial = "LVP"
    plumbing_move_count: int = 0
    include_demo: bool = False


class EventRequest(BaseModel):
    event: WizardEvent


class SessionView(BaseModel):
    session_id: str
    step: Step
    busy: bool
    draft: Optional[QuoteDraft] = None
    outcome: Optional[Outcome] = None


def _view(sid: str, wizard: KioskWizard, outcome: Optional[Outcome] = None) -> SessionView:
    return SessionView(
        session_id=sid,
        step=wizard.state.step,
        busy=wizard.busy,
        draft=wizard.state.draft,
        outcome=outcome,
    )


# ---------- ENDPOINTS ----------

@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/pricebook", response_model=Pricebook)
def pricebook(pb: Pricebook = Depends(get_pricebook)) -> Pricebook:
    return pb


@app.post("/estimate", response_model=QuoteResult)
def estimate(
    preset: str | None = None,
    req: EstimateRequest = Body(...),
    pb: Pricebook = Depends(get_pricebook),
) -> QuoteResult:
    """Price a kitchen without starting a kiosk session."""
    fields = req.model_dump()
    if preset is not None:
        p = pb.preset(preset)
        if p is None:
            raise HTTPException(status_code=400, detail=f"Unknown preset '{preset}'")
        fields.update(
            length_ft=p.length_ft,
            width_ft=p.width_ft,
            cabinet_lf=p.cabinet_lf,
            countertop_lf=p.countertop_lf,
        )

    try:
        inputs = PricingInput.model_validate(fields)
        return calculate_quote(inputs, pb, preset)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/kiosk/sessions", response_model=SessionView, status_code=201)
async def create_session(
    store: QuoteStore = Depends(get_store),
    sessions: SessionRegistry = Depends(get_sessions),
    pb: Pricebook = Depends(get_pricebook),
) -> SessionView:
    wizard = KioskWizard(store, pricebook=pb)
    sid = sessions.add(wizard)
    logger.info("Kiosk session %s started (%d open)", sid, len(sessions))
    return _view(sid, wizard)


@app.get("/kiosk/sessions/{sid}", response_model=SessionView)
async def get_session(sid: str, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    return _view(sid, _session(sid, sessions))


@app.delete("/kiosk/sessions/{sid}", status_code=204)
async def close_session(sid: str, sessions: SessionRegistry = Depends(get_sessions)) -> Response:
    wizard = _session(sid, sessions)
    if wizard.busy:
        raise HTTPException(status_code=409, detail="Session is busy")
    sessions.drop(sid)
    logger.info("Kiosk session %s closed", sid)
    return Response(status_code=204)


@app.post("/kiosk/sessions/{sid}/events", response_model=SessionView)
async def post_event(
    sid: str,
    req: EventRequest,
    sessions: SessionRegistry = Depends(get_sessions),
) -> SessionView:
    wizard = _session(sid, sessions)
    if wizard.busy:
        raise HTTPException(status_code=409, detail="Session is busy")
    return _view(sid, wizard, wizard.dispatch(req.event))


@app.post("/kiosk/sessions/{sid}/advance", response_model=SessionView)
async def advance(sid: str, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    wizard = _session(sid, sessions)
    if wizard.busy:
        raise HTTPException(status_code=409, detail="Session is busy")
    outcome = await wizard.advance()
    return _view(sid, wizard, outcome)


@app.post("/kiosk/sessions/{sid}/reset", response_model=SessionView)
async def reset(sid: str, sessions: SessionRegistry = Depends(get_sessions)) -> SessionView:
    wizard = _session(sid, sessions)
    if wizard.busy:
        raise HTTPException(status_code=409, detail="Session is busy")
    return _view(sid, wizard, wizard.reset())


@app.get("/kiosk/quotes", response_model=list[QuoteDraft])
async def list_quotes(
    status: DraftStatus | None = None,
    store: QuoteStore = Depends(get_store),
) -> list[QuoteDraft]:
    try:
        return await store.list(status=status)
    except StoreError as e:
        logger.error("Listing quotes failed: %s", e)
        raise HTTPException(status_code=503, detail="Quote store unavailable")


@app.get("/kiosk/quotes/stale", response_model=list[QuoteDraft])
async def stale_quotes(
    days: int = settings.stale_after_days,
    store: QuoteStore = Depends(get_store),
) -> list[QuoteDraft]:
    """Drafts that never reached a booking; candidates for a follow-up."""
    try:
        return await find_stale_drafts(store, older_than=timedelta(days=days))
    except StoreError as e:
        logger.error("Stale draft query failed: %s", e)
        raise HTTPException(status_code=503, detail="Quote store unavailable")
