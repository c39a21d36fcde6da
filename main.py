"""FastAPI entrypoint — exposes guided-authoring sessions via REST."""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from langgraph.store.memory import InMemoryStore
from pydantic import BaseModel, Field

from config import HOST, LOG_LEVEL, PORT
from flow.builder import MODULE_REGISTRY, build_session
from flow.errors import StepGraphError
from flow.llm import LLMContentGenerator
from flow.session import ModuleSession
from langsmith_tracing import clear_session_trace
from workers.auth import AuthSession
from workers.persistence import PersistenceGateway

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# ── App + shared services ───────────────────────────────────────────────
app = FastAPI(title="Guided Authoring", version="1.0.0")
store = InMemoryStore()
generator = LLMContentGenerator()
sessions: Dict[str, ModuleSession] = {}


# ── Request models ──────────────────────────────────────────────────────
class CreateSessionRequest(BaseModel):
    module: str
    user_id: Optional[str] = None
    record_id: Optional[str] = None
    read_only: bool = False


class FieldsRequest(BaseModel):
    """Either a plain field patch, or a named setter of the container with its params."""

    container: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)
    action: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)


class NavigateRequest(BaseModel):
    action: str  # "next" | "previous" | "goto"
    index: Optional[int] = None
    step_id: Optional[str] = None


class TitleRequest(BaseModel):
    title: str


class AuthRequest(BaseModel):
    user_id: str


# ── Endpoints ───────────────────────────────────────────────────────────

@app.post("/sessions")
async def create_session(req: CreateSessionRequest):
    """Create a session for one module and open it (fresh, or loading `record_id`)."""
    if req.module not in MODULE_REGISTRY:
        raise HTTPException(422, f"Unknown module: {req.module}")
    auth = AuthSession(req.user_id)
    session = build_session(req.module, gateway=PersistenceGateway(auth, store), auth=auth,
                            generator=generator, read_only=req.read_only)
    sessions[session.id] = session
    await session.open(req.record_id)
    return session.view()


@app.get("/sessions/{session_id}")
def get_session(session_id: str):
    return _get_session(session_id).view()


@app.patch("/sessions/{session_id}/fields")
def update_fields(session_id: str, req: FieldsRequest):
    """Apply a field patch or a named setter to one container."""
    session = _get_session(session_id)
    if session.read_only:
        raise HTTPException(409, "Session is read-only.")
    try:
        container = session.container(req.container or session.definition.primary)
        if req.action:
            # Only setters declared by the module's own container class are callable.
            if req.action.startswith("_") or not callable(vars(type(container)).get(req.action)):
                raise KeyError(f"Unknown action for {container.name}: {req.action}")
            result = getattr(container, req.action)(**req.params)
        else:
            container.patch(**req.fields)
            result = None
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(422, str(e))
    return {"result": result, **session.view()}


@app.post("/sessions/{session_id}/navigate")
def navigate(session_id: str, req: NavigateRequest):
    session = _get_session(session_id)
    nav = session.navigation
    if req.action == "next":
        moved = nav.go_next()
    elif req.action == "previous":
        moved = nav.go_previous()
    elif req.action == "goto" and req.step_id is not None:
        try:
            moved = nav.go_to(req.step_id)
        except StepGraphError as e:
            raise HTTPException(422, str(e))
    elif req.action == "goto" and req.index is not None:
        moved = nav.go_to_step(req.index)
    else:
        raise HTTPException(422, f"Unsupported navigation: {req.action}")
    return {"moved": moved, **session.view()}


@app.post("/sessions/{session_id}/save")
async def save(session_id: str):
    session = _get_session(session_id)
    saved = await session.handle_save()
    return {"saved": saved, **session.view()}


@app.post("/sessions/{session_id}/title")
async def submit_title(session_id: str, req: TitleRequest):
    session = _get_session(session_id)
    saved = await session.submit_title(req.title)
    return {"saved": saved, **session.view()}


@app.delete("/sessions/{session_id}/title")
def dismiss_title(session_id: str):
    session = _get_session(session_id)
    session.dismiss_title_prompt()
    return session.view()


@app.post("/sessions/{session_id}/auth")
async def auth_success(session_id: str, req: AuthRequest):
    """Sign-in succeeded; resume whatever was deferred behind the prompt."""
    session = _get_session(session_id)
    saved = await session.handle_auth_success(req.user_id)
    return {"saved": saved, **session.view()}


@app.delete("/sessions/{session_id}/auth")
def cancel_auth(session_id: str):
    session = _get_session(session_id)
    session.cancel_auth()
    return session.view()


@app.post("/sessions/{session_id}/logout")
def logout(session_id: str):
    """Sign the user out; the session is torn down with them."""
    session = _get_session(session_id)
    session.sign_out()
    clear_session_trace(session.id)
    del sessions[session_id]
    return {"closed": True, "session_id": session_id}


@app.post("/sessions/{session_id}/generate/{target}")
async def generate(session_id: str, target: str):
    session = _get_session(session_id)
    try:
        applied = await session.generate(target)
    except KeyError as e:
        raise HTTPException(422, str(e))
    return {"applied": applied, **session.view()}


@app.delete("/sessions/{session_id}")
def close_session(session_id: str):
    session = _get_session(session_id)
    session.teardown()
    clear_session_trace(session.id)
    del sessions[session_id]
    return {"closed": True, "session_id": session_id}


# ── Helpers ─────────────────────────────────────────────────────────────
def _get_session(session_id: str) -> ModuleSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(404, "Session not found.")
    return session


# ── Run ─────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=HOST, port=PORT, reload=True)
