"""Session endpoints: narrative events, outbound requests, chat, combat and tasks."""

from fastapi import APIRouter, HTTPException, Request

from stres.engine import Engine
from stres.llm import LLMError, client_from_connection
from stres.models import NarrativeEvent, TaskStateError
from stres.sessions import SessionRegistry

from .models import ChatBody, CreateSession, EndCombatBody, EventBody, RequestBody, UpdateParticipant

router = APIRouter()


def _registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def _engine(request: Request, session_id: str) -> Engine:
    try:
        return _registry(request).get(session_id)
    except KeyError:
        raise HTTPException(404, "Session not found")


@router.get("/sessions")
async def list_sessions(request: Request):
    """List live session ids."""
    return _registry(request).ids()


@router.post("/sessions", status_code=201)
async def create_session(request: Request, body: CreateSession):
    """Start a new conversation engine."""
    session_id, engine = _registry(request).create(body.title, body.character_id)
    return {"id": session_id, **engine.status()}


@router.get("/sessions/{session_id}")
async def get_session(request: Request, session_id: str):
    """Mode, combat session, message count and active tasks."""
    return {"id": session_id, **_engine(request, session_id).status()}


@router.delete("/sessions/{session_id}")
async def delete_session(request: Request, session_id: str):
    if not _registry(request).delete(session_id):
        raise HTTPException(404, "Session not found")
    return {"ok": True}


@router.get("/sessions/{session_id}/messages")
async def get_messages(request: Request, session_id: str):
    engine = _engine(request, session_id)
    return [m.model_dump() for m in engine.conversation.messages]


@router.post("/sessions/{session_id}/events")
async def post_event(request: Request, session_id: str, body: EventBody):
    """Feed one narrative line; rewards are dispatched after the state change."""
    engine = _engine(request, session_id)
    outcome = engine.handle(NarrativeEvent(role=body.role, text=body.text))
    sink_errors = await engine.deliver(outcome)
    return {**outcome.model_dump(mode="json"), "sink_errors": sink_errors}


@router.post("/sessions/{session_id}/request")
async def prepare_request(request: Request, session_id: str, body: RequestBody):
    """Payload the next model call would carry (combat context while in combat)."""
    return _engine(request, session_id).prepare_request(body.user_turn).model_dump()


@router.post("/sessions/{session_id}/chat")
async def chat(request: Request, session_id: str, body: ChatBody):
    """Send a player message through the model and process the reply."""
    engine = _engine(request, session_id)
    llm = getattr(request.app.state, "llm", None)
    if llm is None:
        llm = client_from_connection(engine.config.get("llm_connection", {}))
        if llm is None:
            raise HTTPException(400, "No LLM connection configured")
    combat_llm = client_from_connection(
        engine.config.get("combat", {}).get("fallback_connection", {})
    )

    try:
        exchange = await engine.send(llm, body.message, combat_llm=combat_llm)
    except LLMError as e:
        raise HTTPException(502, str(e))
    return exchange.model_dump(mode="json")


@router.post("/sessions/{session_id}/combat/end")
async def end_combat(request: Request, session_id: str, body: EndCombatBody):
    """Manual flee/surrender. A no-op when no combat is active."""
    engine = _engine(request, session_id)
    outcome = engine.end_combat(body.reason)
    sink_errors = await engine.deliver(outcome)
    return {**outcome.model_dump(mode="json"), "sink_errors": sink_errors}


@router.post("/sessions/{session_id}/combat/round")
async def advance_round(request: Request, session_id: str):
    engine = _engine(request, session_id)
    outcome = engine.advance_round()
    sink_errors = await engine.deliver(outcome)
    return {**outcome.model_dump(mode="json"), "sink_errors": sink_errors}


@router.patch("/sessions/{session_id}/combat/participants/{participant_id}")
async def update_participant(
    request: Request, session_id: str, participant_id: str, body: UpdateParticipant,
):
    """Apply HP/condition changes; combat ends when every enemy is down."""
    engine = _engine(request, session_id)
    if engine.controller.session is None:
        raise HTTPException(409, "No combat in progress")
    conditions = set(body.conditions) if body.conditions is not None else None
    try:
        outcome = engine.update_participant(participant_id, body.hp, conditions)
    except KeyError:
        raise HTTPException(404, "Participant not found")
    sink_errors = await engine.deliver(outcome)
    return {**outcome.model_dump(mode="json"), "sink_errors": sink_errors}


@router.get("/sessions/{session_id}/tasks")
async def list_tasks(request: Request, session_id: str):
    """In-progress tasks with elapsed minutes."""
    return _engine(request, session_id).active_tasks()


@router.delete("/sessions/{session_id}/tasks")
async def clear_tasks(request: Request, session_id: str):
    """Cancel every in-progress task."""
    tasks = _engine(request, session_id).clear_tasks()
    return [t.model_dump(mode="json") for t in tasks]


@router.delete("/sessions/{session_id}/tasks/{task_id}")
async def cancel_task(request: Request, session_id: str, task_id: str):
    engine = _engine(request, session_id)
    try:
        task = engine.cancel_task(task_id)
    except KeyError:
        raise HTTPException(404, "Task not found")
    except TaskStateError as e:
        raise HTTPException(409, str(e))
    return task.model_dump(mode="json")
