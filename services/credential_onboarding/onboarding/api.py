import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from onboarding.config import LOG_LEVEL, MIN_FUNDING_LAMPORTS
from onboarding.errors import UnknownSessionError
from onboarding.flow import PresentationNode, Step, render_help
from onboarding.guard import CreateResult
from onboarding.ledger.provider import close_ledger_client, get_ledger_client
from onboarding.resources import CHAIN_ORDER, ResourceKind
from onboarding.service import OnboardingService, SessionRegistry
from onboarding.session import PendingParameters

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _registry
    yield
    # Sessions hold the shared ledger client; drop them with it.
    _registry = None
    await close_ledger_client()


app = FastAPI(title="Credential Onboarding", lifespan=lifespan)


# ---------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------

class StageRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    criteria: Optional[str] = None
    url: Optional[str] = None
    email: Optional[str] = None
    recipient: Optional[str] = None


class StartAnotherRequest(BaseModel):
    clear_from: ResourceKind


# ---------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------

class ActionView(BaseModel):
    action: str
    label: str
    kind: Optional[ResourceKind] = None


class NodeView(BaseModel):
    step: Step
    text: str
    actions: List[ActionView]


class ResourceView(BaseModel):
    kind: ResourceKind
    exists: str
    address: Optional[str] = None
    parent_key: Optional[str] = None
    lamports: Optional[int] = None
    label: Optional[str] = None
    signature: Optional[str] = None
    probe_error: Optional[str] = None


class OutcomeView(BaseModel):
    kind: ResourceKind
    status: str
    address: Optional[str] = None
    signature: Optional[str] = None
    error: Optional[str] = None
    logs: List[str] = []


class SessionView(BaseModel):
    session_id: str
    version: int
    step: Step
    completed: bool
    in_progress: bool
    resources: List[ResourceView]
    history: List[ResourceView] = []
    node: NodeView
    outcome: Optional[OutcomeView] = None


# ---------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------

_registry: Optional[SessionRegistry] = None


def get_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry(get_ledger_client(), min_funding=MIN_FUNDING_LAMPORTS)
    return _registry


def lookup(session_id: str, registry: SessionRegistry = Depends(get_registry)) -> OnboardingService:
    try:
        return registry.get(session_id)
    except UnknownSessionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def node_view(node: PresentationNode) -> NodeView:
    return NodeView(
        step=node.step,
        text=node.text,
        actions=[ActionView(action=a.action.value, label=a.label, kind=a.kind) for a in node.actions],
    )


def resource_view(record) -> ResourceView:
    return ResourceView(
        kind=record.kind,
        exists=record.exists.value,
        address=record.address,
        parent_key=record.parent_key,
        lamports=record.lamports,
        label=record.label,
        signature=record.signature,
        probe_error=record.probe_error,
    )


def outcome_view(result: CreateResult) -> OutcomeView:
    error = result.error
    return OutcomeView(
        kind=result.kind,
        status=result.status.value,
        address=result.address,
        signature=result.signature,
        error=str(error) if error is not None else None,
        logs=list(getattr(error, "logs", None) or []),
    )


def session_view(service: OnboardingService, outcome: Optional[CreateResult] = None) -> SessionView:
    step = service.evaluate()
    session = service.session
    return SessionView(
        session_id=session.session_id,
        version=service.cache.version,
        step=step,
        completed=session.completed,
        in_progress=session.in_progress,
        resources=[resource_view(session.record(kind)) for kind in CHAIN_ORDER],
        history=[resource_view(record) for record in session.history],
        node=node_view(service.node(outcome)),
        outcome=outcome_view(outcome) if outcome is not None else None,
    )


# ---------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.get("/help", response_model=NodeView)
def wallet_help():
    return node_view(render_help())


@app.post("/sessions", response_model=SessionView, status_code=201)
async def open_session(registry: SessionRegistry = Depends(get_registry)):
    service = registry.open()
    try:
        await service.probe()
        return session_view(service)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/sessions/{session_id}", response_model=SessionView)
async def read_session(service: OnboardingService = Depends(lookup)):
    return session_view(service)


@app.delete("/sessions/{session_id}", status_code=204)
async def close_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    try:
        registry.close(session_id)
    except UnknownSessionError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@app.post("/sessions/{session_id}/probe", response_model=SessionView)
async def probe_session(service: OnboardingService = Depends(lookup)):
    try:
        await service.probe()
        return session_view(service)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/sessions/{session_id}/balance", response_model=SessionView)
async def check_balance(service: OnboardingService = Depends(lookup)):
    try:
        await service.check_balance()
        return session_view(service)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.put("/sessions/{session_id}/parameters/{kind}", response_model=SessionView)
async def stage_parameters(kind: ResourceKind, req: StageRequest, service: OnboardingService = Depends(lookup)):
    try:
        service.stage(kind, PendingParameters(**req.model_dump()))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return session_view(service)


@app.post("/sessions/{session_id}/resources/{kind}", response_model=SessionView)
async def create_resource(kind: ResourceKind, service: OnboardingService = Depends(lookup)):
    try:
        result = await service.create(kind)
        return session_view(service, result)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.post("/sessions/{session_id}/reset", response_model=SessionView)
async def reset_session(service: OnboardingService = Depends(lookup)):
    service.reset()
    return session_view(service)


@app.post("/sessions/{session_id}/start-another", response_model=SessionView)
async def start_another(req: StartAnotherRequest, service: OnboardingService = Depends(lookup)):
    try:
        service.start_another(req.clear_from)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return session_view(service)
