"""
Transport layer - line I/O with the machine controller.

Provides:
- Transport protocol (interface)
- MockTransport: simulated controller for tests and demo runs
- (SerialTransport in separate file for production)
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Protocol

from .types import Subsystem, SUMMARY_FLAGS


class Transport(Protocol):
    """Protocol for controller communication."""

    def send(self, line: str) -> None:
        """Write one request line. Does not wait for the reply."""
        ...

    def read_lines(self) -> List[str]:
        """Return every complete line received so far. Never blocks."""
        ...

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        ...


_M409 = re.compile(r'^M409(?:\s+K"(?P<key>[^"]*)")?(?:\s+F"(?P<flags>[^"]*)")?\s*$')


def default_model() -> Dict[str, Any]:
    """A small two-tool printer, enough to exercise every handler."""
    return {
        "boards": [{"firmwareName": "RepRapFirmware"}],
        "directories": {},
        "fans": [{"actualValue": 0.5}],
        "heat": {
            "bedHeaters": [0, -1, -1, -1],
            "chamberHeaters": [-1, -1],
            "heaters": [
                {"active": 60.0, "current": 21.5, "standby": 0.0, "state": "active"},
                {"active": 205.0, "current": 24.1, "standby": 150.0, "state": "standby"},
                {"active": 0.0, "current": 23.8, "standby": 0.0, "state": "off"},
            ],
        },
        "inputs": [],
        "job": {
            "file": {"fileName": None, "size": 0},
            "filePosition": 0,
            "timesLeft": {"file": None, "filament": None, "layer": None},
        },
        "move": {
            "axes": [
                {"letter": "X", "visible": True, "homed": True, "babystep": 0.0,
                 "machinePosition": 0.0, "userPosition": 0.0,
                 "workplaceOffsets": [0.0] * 9},
                {"letter": "Y", "visible": True, "homed": True, "babystep": 0.0,
                 "machinePosition": 0.0, "userPosition": 0.0,
                 "workplaceOffsets": [0.0] * 9},
                {"letter": "Z", "visible": True, "homed": False, "babystep": 0.0,
                 "machinePosition": 5.0, "userPosition": 5.0,
                 "workplaceOffsets": [0.0] * 9},
            ],
            "extruders": [{"factor": 1.0}, {"factor": 1.0}],
            "kinematics": {"name": "cartesian"},
            "speedFactor": 1.0,
            "workplaceNumber": 0,
        },
        "network": {"name": "mock-printer", "interfaces": [{"actualIP": "10.0.0.42"}]},
        "scanner": {},
        "sensors": {"probes": [{"value": [0]}]},
        "spindles": [],
        "state": {
            "currentTool": 0,
            "messageBox": None,
            "status": "idle",
            "upTime": 1,
        },
        "tools": [
            {"number": 0, "heaters": [1], "extruders": [0], "offsets": [0.0, 0.0, 0.0], "state": "active"},
            {"number": 1, "heaters": [2], "extruders": [1], "offsets": [10.0, 0.0, 0.0], "state": "off"},
        ],
        "volumes": [{"mounted": True}],
    }


class MockTransport:
    """
    Mock transport for testing without hardware.

    Keeps an object model and one sequence number per subsystem and answers
    M409 requests the way the controller does: the summary carries the live
    values and all seqs, a keyed request returns that subsystem's branch.
    Replies are queued and handed out by read_lines().
    """

    def __init__(self, model: Optional[Dict[str, Any]] = None):
        self.model: Dict[str, Any] = model if model is not None else default_model()
        self.seqs: Dict[str, int] = {s.value: 1 for s in Subsystem}
        self.sent_lines: List[str] = []
        self.auto_reply = True
        self._incoming: List[str] = []
        self._connected = True

    @property
    def command_count(self) -> int:
        """Number of lines sent."""
        return len(self.sent_lines)

    # =========================================================================
    # Transport protocol
    # =========================================================================

    def send(self, line: str) -> None:
        if not self._connected:
            raise ConnectionError("Not connected")
        self.sent_lines.append(line)
        if not self.auto_reply:
            return

        match = _M409.match(line.strip())
        if match is None:
            return
        key = match.group("key")
        if key is None:
            self._incoming.append(self.summary_reply())
        else:
            self._incoming.append(self.detail_reply(key, match.group("flags") or ""))

    def read_lines(self) -> List[str]:
        lines, self._incoming = self._incoming, []
        return lines

    @property
    def is_connected(self) -> bool:
        return self._connected

    # =========================================================================
    # Simulated controller
    # =========================================================================

    def summary_reply(self) -> str:
        state = self.model["state"]
        job = self.model["job"]
        result = {
            "fans": [{"actualValue": fan.get("actualValue")} for fan in self.model["fans"]],
            "heat": {"heaters": self.model["heat"]["heaters"]},
            "job": {"filePosition": job["filePosition"], "timesLeft": job["timesLeft"]},
            "move": {"axes": [
                {"homed": a["homed"], "machinePosition": a["machinePosition"],
                 "userPosition": a["userPosition"]}
                for a in self.model["move"]["axes"]
            ]},
            "seqs": dict(self.seqs),
            "sensors": self.model["sensors"],
            "spindles": [{"current": s.get("current", 0)} for s in self.model["spindles"]],
            "state": {
                "currentTool": state["currentTool"],
                "status": state["status"],
                "upTime": state["upTime"],
            },
            "tools": [{"state": t["state"]} for t in self.model["tools"]],
        }
        return json.dumps({"key": "", "flags": SUMMARY_FLAGS, "result": result})

    def detail_reply(self, key: str, flags: str = "v") -> str:
        return json.dumps({"key": key, "flags": flags, "result": self.model.get(key)})

    def bump(self, subsystem: str) -> None:
        """Simulate a change on the controller side."""
        self.seqs[subsystem] = (self.seqs[subsystem] + 1) & 0xFFFF

    def push(self, line: str) -> None:
        """Queue an unsolicited line (push message, garbage, ...)."""
        self._incoming.append(line)

    def restart(self) -> None:
        """Simulate a controller reset: uptime starts over."""
        self.model["state"]["upTime"] = 0

    def disconnect(self) -> None:
        """Simulate disconnection (for testing error handling)."""
        self._connected = False

    def reconnect(self) -> None:
        self._connected = True

    def clear_history(self) -> None:
        self.sent_lines.clear()
