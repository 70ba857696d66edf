import logging
from typing import List

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from allocation import HoldingError, add_holding, allocation_chart, remove_holding, validate_portfolio
from gemini_client import GeminiClient, GeminiServiceError, MissingCredentialError
from renderer import render_chat_text, render_markdown
from schemas import (
    ASSET_LABELS,
    ChatMessageView,
    ChatRequest,
    HoldingKind,
    HoldingRequest,
    InvestmentHorizon,
    Portfolio,
    PortfolioUpdate,
    PortfolioValidation,
    ReportView,
    RiskTolerance,
    SessionView,
    Strategy,
)
from sessions import (
    AdvisorySession,
    NotEditableError,
    NotSubmittableError,
    SessionBusyError,
    SessionNotFoundError,
    create_session,
    delete_session,
    get_session,
    run_analysis,
)
from settings import FRONTEND_URL, LOG_LEVEL, MAX_HOLDINGS

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Harmonia Advisor")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*" if FRONTEND_URL == "*" else FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

HOLDING_FIELDS = {HoldingKind.etf: "etf_holdings", HoldingKind.stock: "stock_holdings"}


def get_gemini_client() -> GeminiClient:
    return GeminiClient()


def _session_or_404(session_id: str) -> AdvisorySession:
    try:
        return get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="session not found")


def _editable(session: AdvisorySession) -> None:
    try:
        session.ensure_editable()
    except (SessionBusyError, NotEditableError) as e:
        raise HTTPException(status_code=409, detail=str(e))


def _session_view(session: AdvisorySession) -> SessionView:
    return SessionView(
        id=session.id,
        step=session.step,
        is_loading=session.is_loading,
        portfolio=session.portfolio,
        validation=validate_portfolio(session.portfolio),
    )


@app.get("/test")
async def test():
    return {"status": "ok"}


@app.get("/options")
async def options():
    return {
        "risk_tolerance": [v.value for v in RiskTolerance],
        "horizon": [v.value for v in InvestmentHorizon],
        "strategy": [v.value for v in Strategy],
        "asset_labels": ASSET_LABELS,
        "max_holdings": MAX_HOLDINGS,
        "defaults": Portfolio().model_dump(mode="json"),
    }


@app.post("/portfolio/validate", response_model=PortfolioValidation)
async def validate(p: Portfolio):
    return validate_portfolio(p)


@app.post("/sessions", response_model=SessionView, status_code=201)
async def new_session():
    return _session_view(create_session())


@app.get("/sessions/{session_id}", response_model=SessionView)
async def read_session(session_id: str):
    return _session_view(_session_or_404(session_id))


@app.delete("/sessions/{session_id}")
async def discard_session(session_id: str):
    if not delete_session(session_id):
        raise HTTPException(status_code=404, detail="session not found")
    return {"deleted": session_id}


@app.patch("/sessions/{session_id}/portfolio", response_model=SessionView)
async def edit_portfolio(session_id: str, update: PortfolioUpdate):
    session = _session_or_404(session_id)
    _editable(session)
    session.update_portfolio(**update.model_dump(exclude_none=True))
    return _session_view(session)


@app.post("/sessions/{session_id}/holdings/{kind}", response_model=SessionView)
async def add_session_holding(session_id: str, kind: HoldingKind, req: HoldingRequest):
    session = _session_or_404(session_id)
    _editable(session)
    name = HOLDING_FIELDS[kind]
    try:
        holdings = add_holding(getattr(session.portfolio, name), req.ticker, req.percentage)
    except HoldingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    session.update_portfolio(**{name: [h.model_dump() for h in holdings]})
    return _session_view(session)


@app.delete("/sessions/{session_id}/holdings/{kind}/{ticker}", response_model=SessionView)
async def remove_session_holding(session_id: str, kind: HoldingKind, ticker: str):
    session = _session_or_404(session_id)
    _editable(session)
    name = HOLDING_FIELDS[kind]
    holdings = remove_holding(getattr(session.portfolio, name), ticker)
    session.update_portfolio(**{name: [h.model_dump() for h in holdings]})
    return _session_view(session)


@app.get("/sessions/{session_id}/validation", response_model=PortfolioValidation)
async def session_validation(session_id: str):
    return validate_portfolio(_session_or_404(session_id).portfolio)


@app.post("/sessions/{session_id}/analysis", response_model=ReportView)
async def analyze(session_id: str, client: GeminiClient = Depends(get_gemini_client)):
    session = _session_or_404(session_id)
    if session.step != "input":
        raise HTTPException(status_code=409, detail="analysis already generated; reset to edit inputs")
    try:
        await run_analysis(session, client)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except NotSubmittableError as e:
        raise HTTPException(status_code=422, detail=e.validation.model_dump())
    except MissingCredentialError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except GeminiServiceError:
        logger.warning("analysis failed for session %s", session_id)
        raise HTTPException(
            status_code=502,
            detail="Error generating analysis. Please ensure you have a valid internet connection and API key.",
        )
    return _report(session)


def _report(session: AdvisorySession) -> ReportView:
    p = session.portfolio
    return ReportView(
        session_id=session.id,
        markdown=session.analysis,
        nodes=render_markdown(session.analysis),
        chart=allocation_chart(p.current_allocation, p.desired_allocation),
        portfolio=p,
    )


@app.get("/sessions/{session_id}/report", response_model=ReportView)
async def report(session_id: str):
    session = _session_or_404(session_id)
    if session.step != "analysis":
        raise HTTPException(status_code=404, detail="no analysis for this session")
    return _report(session)


@app.post("/sessions/{session_id}/reset", response_model=SessionView)
async def reset(session_id: str):
    session = _session_or_404(session_id)
    if session.is_loading:
        raise HTTPException(status_code=409, detail="An analysis is in progress.")
    session.reset()
    return _session_view(session)


@app.get("/sessions/{session_id}/chat", response_model=List[ChatMessageView])
async def chat_history(session_id: str):
    session = _session_or_404(session_id)
    if session.chat is None:
        raise HTTPException(status_code=404, detail="chat is not open for this session")
    return [
        ChatMessageView(**m.model_dump(), nodes=render_chat_text(m.text))
        for m in session.chat.messages
    ]


@app.post("/sessions/{session_id}/chat")
async def chat(session_id: str, msg: ChatRequest):
    session = _session_or_404(session_id)
    if session.chat is None:
        raise HTTPException(status_code=404, detail="chat is not open for this session")
    try:
        stream = session.chat.send_message_stream(msg.message)
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError:
        raise HTTPException(status_code=400, detail="message is empty")
    return StreamingResponse(stream, media_type="text/plain; charset=utf-8")
