"""
Connection Routes - Connect/disconnect, status and request history
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..dependencies import get_app_state, AppState

router = APIRouter(tags=["connection"])


class ConnectRequest(BaseModel):
    port: str
    poll: bool = True


@router.get("/ports")
def get_ports():
    """List available serial ports."""
    from core.serial_transport import SerialTransport
    return {"ports": SerialTransport.list_ports()}


@router.get("/status")
def get_status(state: AppState = Depends(get_app_state)):
    """Get connection status and sync state."""
    return state.get_status()


@router.get("/history")
def get_history(limit: int = 50, state: AppState = Depends(get_app_state)):
    """Get recent request history."""
    return {"history": state.get_request_history(limit)}


@router.post("/connect")
def connect(req: ConnectRequest, state: AppState = Depends(get_app_state)):
    """Connect to the controller ("mock" for the simulated one)."""
    success = state.connect(req.port, poll=req.poll)
    message = "Connected" if success else (state.last_error or "Connection failed")
    return {"success": success, "message": message}


@router.post("/disconnect")
def disconnect(state: AppState = Depends(get_app_state)):
    """Disconnect from the controller."""
    state.disconnect()
    return {"success": True}
