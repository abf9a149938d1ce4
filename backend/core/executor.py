"""
Request execution layer.

Provides:
- RequestChannel: single-slot outbound sink with an auditable history
- RequestRecord: what was sent, when, and whether the write succeeded
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, List, Optional, TYPE_CHECKING

from .logger import log_poll, log_warn
from .types import DetailRequest, Request

if TYPE_CHECKING:
    from .transport import Transport


DEFAULT_HISTORY_LIMIT = 200


@dataclass(frozen=True)
class RequestRecord:
    """
    One outbound request.

    Immutable record for audit trail.
    """
    gcode: str
    kind: str
    timestamp: datetime
    sent_at_ms: int
    success: bool
    error: Optional[str] = None

    def __str__(self) -> str:
        status = "✓" if self.success else "✗"
        return f"[{self.timestamp:%H:%M:%S}] {status} {self.kind}: {self.gcode}"

    def to_dict(self) -> dict:
        return {
            "gcode": self.gcode,
            "kind": self.kind,
            "timestamp": self.timestamp.isoformat(),
            "sent_at_ms": self.sent_at_ms,
            "success": self.success,
            "error": self.error,
        }


class RequestChannel:
    """
    Writes requests to a transport, one at a time.

    The scheduler guarantees at most one request is outstanding; the
    channel only records what went out.
    """

    def __init__(self, transport: "Transport", history_limit: int = DEFAULT_HISTORY_LIMIT):
        self.transport = transport
        self._history: Deque[RequestRecord] = deque(maxlen=history_limit)

    def send(self, request: Request, now: int, kind: str = "") -> RequestRecord:
        """
        Send a single request and record it.

        Transport errors are recorded, then re-raised.
        """
        gcode = request.to_gcode()
        kind = kind or ("detail" if isinstance(request, DetailRequest) else "summary")

        try:
            self.transport.send(gcode)
        except (ConnectionError, OSError) as e:
            record = RequestRecord(gcode, kind, datetime.now(), now, False, str(e))
            self._history.append(record)
            log_warn("Request failed", {"gcode": gcode, "error": str(e)})
            raise

        record = RequestRecord(gcode, kind, datetime.now(), now, True)
        self._history.append(record)
        log_poll(gcode, {"kind": kind})
        return record

    def get_history(self, limit: int | None = None) -> List[RequestRecord]:
        """
        Get request history, oldest first.

        Args:
            limit: Optional max number of recent entries to return.
        """
        history = list(self._history)
        if limit is None:
            return history
        return history[-limit:] if limit > 0 else []

    def get_last(self) -> RequestRecord | None:
        """Get most recent request."""
        return self._history[-1] if self._history else None

    def clear_history(self) -> None:
        self._history.clear()
