"""
Model Routes - Mirrored object model, scheduler state and events
"""

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_app_state, require_engine, AppState

router = APIRouter(tags=["model"])


@router.get("/model")
def get_model(state: AppState = Depends(get_app_state)):
    """The whole mirrored object model."""
    engine = require_engine()
    with state.lock:
        return engine.store.to_dict()


@router.get("/model/tools/{index}")
def get_tool(index: int, state: AppState = Depends(get_app_state)):
    """One tool by its controller index."""
    engine = require_engine()
    with state.lock:
        tool = engine.store.tools.get(index)
        if tool is None:
            raise HTTPException(status_code=404, detail=f"Tool {index} not found")
        return tool.to_dict()


@router.get("/scheduler")
def get_scheduler(state: AppState = Depends(get_app_state)):
    """Sequence numbers, dirty subsystems and timing."""
    engine = require_engine()
    with state.lock:
        return engine.scheduler.to_dict()


@router.get("/events")
def get_events(limit: int = 50, state: AppState = Depends(get_app_state)):
    """Most recent collaborator events, oldest first."""
    engine = require_engine()
    with state.lock:
        return {"events": [event.to_dict() for event in engine.recent_events(limit)]}


@router.post("/poll")
def poll(state: AppState = Depends(get_app_state)):
    """Run one engine tick now."""
    require_engine()
    action = state.tick()
    return {"success": True, "action": action}
