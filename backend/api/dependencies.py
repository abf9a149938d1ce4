"""
API Dependencies - Dependency injection for FastAPI

One SyncEngine per connection. A background thread drives engine.tick();
every route touching the engine takes the same lock.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, List, Dict, Any
import sys
import os
import threading

import serial

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.logger import log_critical, log_ok, log_warn
from core.transport import MockTransport
from core.serial_transport import SerialTransport
from engine import EngineConfig, SyncEngine


DEFAULT_TICK_INTERVAL = 0.05  # seconds between engine ticks


@dataclass
class AppState:
    """
    Application state container.

    Holds the engine, its transport and the poll thread.
    """
    config: EngineConfig = field(default_factory=EngineConfig)
    tick_interval: float = DEFAULT_TICK_INTERVAL
    clock: Optional[Callable[[], int]] = None
    engine: Optional[SyncEngine] = None
    last_error: Optional[str] = None
    lock: threading.RLock = field(default_factory=threading.RLock)
    _transport: Optional[Any] = None
    _poll_thread: Optional[threading.Thread] = None
    _stop: threading.Event = field(default_factory=threading.Event)

    @property
    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_connected

    @property
    def is_polling(self) -> bool:
        return self._poll_thread is not None and self._poll_thread.is_alive()

    def connect(self, port: str, poll: bool = True) -> bool:
        """Open the port, start the engine and optionally the poll thread."""
        self.disconnect()
        try:
            # Use mock for testing, real serial for production
            if port == "mock":
                transport = MockTransport()
            else:
                transport = SerialTransport()
                transport.connect(port)
        except ConnectionError as e:
            log_critical(f"Connection error: {e}")
            self.last_error = str(e)
            return False

        with self.lock:
            self._transport = transport
            self.engine = SyncEngine(transport, clock=self.clock, config=self.config)
            self.engine.start()
            self.last_error = None

        if poll:
            self._start_polling()
        log_ok(f"Connected to {port}")
        return True

    def disconnect(self) -> None:
        """Stop polling and close the transport."""
        self._stop_polling()
        with self.lock:
            if hasattr(self._transport, 'disconnect'):
                self._transport.disconnect()
            self._transport = None
            self.engine = None

    # =========================================================================
    # Background polling
    # =========================================================================

    def _start_polling(self) -> None:
        self._stop.clear()
        self._poll_thread = threading.Thread(target=self._poll_loop, name="engine-poll", daemon=True)
        self._poll_thread.start()

    def _stop_polling(self) -> None:
        self._stop.set()
        thread = self._poll_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._poll_thread = None

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            try:
                self.tick()
            except (ConnectionError, serial.SerialException) as e:
                log_critical("Polling stopped", {"error": str(e)})
                self.last_error = str(e)
                return
            self._stop.wait(self.tick_interval)

    def tick(self) -> Optional[str]:
        """Run one engine tick. Returns the action taken, None if disconnected."""
        with self.lock:
            if self.engine is None:
                return None
            return self.engine.tick().kind.name.lower()

    # =========================================================================
    # Snapshots
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get current status for API."""
        with self.lock:
            if self.engine:
                status = self.engine.get_status()
                status["polling"] = self.is_polling
                status["last_error"] = self.last_error
                return status
            return {
                "connected": False,
                "status": "connecting",
                "initialized": False,
                "dirty": [],
                "last_request": None,
                "message_seq": 0,
                "polling": False,
                "last_error": self.last_error,
            }

    def get_request_history(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent request history."""
        with self.lock:
            if not self.engine:
                return []
            return [r.to_dict() for r in self.engine.channel.get_history(limit)]


# Global instance
_app_state: Optional[AppState] = None


def get_app_state() -> AppState:
    """Get the global app state instance."""
    global _app_state
    if _app_state is None:
        _app_state = AppState()
    return _app_state


def require_engine() -> SyncEngine:
    """Get engine, raising error if not connected."""
    from fastapi import HTTPException

    state = get_app_state()
    if not state.is_connected or state.engine is None:
        log_warn("Request rejected: not connected")
        raise HTTPException(status_code=400, detail="Not connected to controller")
    return state.engine
