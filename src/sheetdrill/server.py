import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from sheetdrill.application.config import resolve_config
from sheetdrill.application.factory import get_sheet_store
from sheetdrill.application.session import StudySession
from sheetdrill.consts import VERSION
from sheetdrill.domain.errors import SheetdrillError, TransportError, ValidationError
from sheetdrill.domain.models import AnswerPhase, Draw, StudyMode
from sheetdrill.domain.ports import SheetStore

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("sheetdrill.server")


class ServerState:
    """The one study session this server drives, plus the store it owns."""

    def __init__(self):
        self.session: StudySession | None = None
        self.store: SheetStore | None = None

    async def reset(self) -> None:
        if self.session:
            await self.session.close()
        if self.store:
            await self.store.close()
        self.session = None
        self.store = None


state = ServerState()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"sheetdrill server v{VERSION} starting up...")
    yield
    # Shutdown
    if state.session and state.session.pending_writes:
        logger.info("Flushing pending progress writes before shutdown...")
        await state.session.sync()
    await state.reset()
    logger.info("sheetdrill server shutting down...")


app = FastAPI(
    title="sheetdrill Server",
    description="HTTP front end for adaptive spreadsheet drills.",
    version=VERSION,
    lifespan=lifespan,
)

start_time = time.time()


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class DrawModel(BaseModel):
    item_id: str
    direction: str
    prompt: str
    options: list[str]
    phase: str
    prompt_explanation: str = ""
    # Only revealed once the draw has been answered at least once.
    expected: str | None = None
    answer_explanation: str | None = None
    wrong_choice: str | None = None


class SummaryModel(BaseModel):
    round_progress: str
    answers: int
    accuracy: str
    tap_accuracy: str
    wrong_cards: int
    most_missed: str
    round_ended: bool


class StateResponse(BaseModel):
    status: str
    loaded: bool
    cards: int
    pending_writes: int
    study_mode: str
    advance_pending: bool
    awaiting_manual_next: bool
    current: DrawModel | None = None
    summary: SummaryModel | None = None


class LoadRequest(BaseModel):
    # If None, use defaults/config file.
    spreadsheet: str | None = None
    backend: str | None = None
    local_dir: str | None = None
    study_mode: str | None = None
    advance_mode: str | None = None
    seed: int | None = None


class LoadResponse(BaseModel):
    cards: int
    new_rows: int
    skipped_rows: int
    orphaned_stats: int
    status: str


class AnswerRequest(BaseModel):
    choice: str


class AnswerResponse(BaseModel):
    outcome: str
    had_mistake: bool
    round_ended: bool
    state: StateResponse


class ModeRequest(BaseModel):
    study_mode: StudyMode


class VisibilityRequest(BaseModel):
    hidden: bool


class UnloadRequest(BaseModel):
    sync_first: bool = True


class SyncResponse(BaseModel):
    ok: bool
    flushed: bool
    rows: int = 0
    ranges: int = 0
    pending_writes: int
    status: str


def _http_error(e: SheetdrillError) -> HTTPException:
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, TransportError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _require_session() -> StudySession:
    if state.session is None:
        raise HTTPException(status_code=409, detail="No deck loaded. POST /load first.")
    return state.session


def _draw_model(draw: Draw) -> DrawModel:
    revealed = draw.phase != AnswerPhase.UNANSWERED
    return DrawModel(
        item_id=draw.item_id,
        direction=draw.direction.value,
        prompt=draw.prompt,
        options=list(draw.options),
        phase=draw.phase.value,
        prompt_explanation=draw.prompt_explanation,
        expected=draw.expected if revealed else None,
        answer_explanation=draw.answer_explanation if revealed else None,
        wrong_choice=draw.wrong_choice,
    )


def _state_response(session: StudySession | None) -> StateResponse:
    if session is None:
        return StateResponse(
            status="Load a sheet to start.",
            loaded=False,
            cards=0,
            pending_writes=0,
            study_mode=StudyMode.FRONT_ONLY.value,
            advance_pending=False,
            awaiting_manual_next=False,
        )

    summary = session.summary()
    return StateResponse(
        status=session.status,
        loaded=session.ctx.loaded,
        cards=len(session.ctx.items),
        pending_writes=session.pending_writes,
        study_mode=session.ctx.study_mode.value,
        advance_pending=session.advance_pending,
        awaiting_manual_next=session.awaiting_manual_next,
        current=_draw_model(session.current) if session.current else None,
        summary=SummaryModel(
            round_progress=summary.round_progress,
            answers=summary.answers,
            accuracy=summary.accuracy_text,
            tap_accuracy=summary.tap_accuracy_text,
            wrong_cards=summary.wrong_cards,
            most_missed=summary.most_missed,
            round_ended=summary.round_ended,
        ),
    )


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/load", response_model=LoadResponse)
async def load_deck(req: LoadRequest):
    """
    Load a deck into a fresh session, replacing any previous one.
    """
    logger.info(f"Load requested via API: {req}")

    overrides = {
        "spreadsheet": req.spreadsheet,
        "backend": req.backend,
        "local_dir": req.local_dir,
        "study_mode": req.study_mode,
        "advance_mode": req.advance_mode,
        "seed": req.seed,
    }
    try:
        config = resolve_config(overrides)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    if not config.spreadsheet:
        raise HTTPException(status_code=422, detail="No spreadsheet given.")

    store = get_sheet_store(config)
    session = StudySession.from_config(store, config)
    try:
        result = await session.load(config.spreadsheet)
    except SheetdrillError as e:
        logger.error(f"Load failed: {e}")
        await store.close()
        raise _http_error(e) from e

    await state.reset()
    state.session = session
    state.store = store
    return LoadResponse(
        cards=len(result.items),
        new_rows=len(result.new_mutations),
        skipped_rows=result.skipped_rows,
        orphaned_stats=result.orphaned_stats,
        status=session.status,
    )


@app.get("/state", response_model=StateResponse)
async def get_state():
    return _state_response(state.session)


@app.post("/answer", response_model=AnswerResponse)
async def submit(req: AnswerRequest):
    """Select one option for the current draw."""
    session = _require_session()
    result = session.answer(req.choice)
    return AnswerResponse(
        outcome=result.outcome.value,
        had_mistake=result.had_mistake,
        round_ended=result.round_ended,
        state=_state_response(session),
    )


@app.post("/next", response_model=StateResponse)
async def next_card():
    """Advance to the queued next card (manual advance, or skip the delay)."""
    session = _require_session()
    session.advance()
    return _state_response(session)


@app.post("/round", response_model=StateResponse)
async def start_round():
    session = _require_session()
    session.start_round()
    return _state_response(session)


@app.post("/mode", response_model=StateResponse)
async def set_mode(req: ModeRequest):
    session = _require_session()
    session.set_study_mode(req.study_mode)
    return _state_response(session)


@app.post("/sync", response_model=SyncResponse)
async def sync_now():
    """Flush pending progress writes."""
    session = _require_session()
    result = await session.sync()
    if result is None:
        return SyncResponse(
            ok=True, flushed=False, pending_writes=session.pending_writes, status=session.status
        )
    if not result.ok:
        logger.error(f"Sync failed: {result.error}")
    return SyncResponse(
        ok=result.ok,
        flushed=True,
        rows=result.rows,
        ranges=result.ranges,
        pending_writes=session.pending_writes,
        status=session.status,
    )


@app.post("/visibility")
async def visibility(req: VisibilityRequest):
    """Client went to the background (hidden) or came back; hiding triggers a flush."""
    session = _require_session()
    task = session.on_visibility_change(req.hidden)
    return {"flushing": task is not None}


@app.post("/unload", response_model=StateResponse)
async def unload_deck(req: UnloadRequest):
    session = _require_session()
    await session.unload(sync_first=req.sync_first)
    return _state_response(session)
