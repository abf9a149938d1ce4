"""
Structured logging for the panel sync engine.

Prefixes:
  ⚡ CRITICAL - Errors, remote restarts
  ⚠️  WARN     - Warnings, lost requests, unparseable lines
  ✓  OK       - Success confirmations
  ⬡  SERIAL   - Raw line I/O
  ⇄  POLL     - Outbound object model requests
  ⟳  SYNC     - Sequence number bookkeeping
  ▦  MODEL    - Object model creation/removal
  🔔 ALERT    - Message box alerts
"""

from enum import Enum
from typing import Optional
from datetime import datetime


class LogLevel(Enum):
    CRITICAL = "⚡ CRITICAL"
    WARN = "⚠️  WARN    "
    OK = "✓  OK      "
    SERIAL = "⬡  SERIAL  "
    POLL = "⇄  POLL    "
    SYNC = "⟳  SYNC    "
    MODEL = "▦  MODEL   "
    ALERT = "🔔 ALERT   "
    INFO = "ℹ  INFO    "


def log(level: LogLevel, message: str, data: Optional[dict] = None):
    """Log a message with structured prefix."""
    timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    prefix = level.value

    line = f"[{timestamp}] {prefix} | {message}"
    if data:
        line += f" | {data}"

    print(line)


# Convenience functions
def log_critical(msg: str, data: Optional[dict] = None):
    log(LogLevel.CRITICAL, msg, data)

def log_warn(msg: str, data: Optional[dict] = None):
    log(LogLevel.WARN, msg, data)

def log_ok(msg: str, data: Optional[dict] = None):
    log(LogLevel.OK, msg, data)

def log_serial(direction: str, data: str):
    """Log line I/O. direction is '>>>' (send) or '<<<' (recv)"""
    log(LogLevel.SERIAL, f"{direction} {data}")

def log_poll(msg: str, data: Optional[dict] = None):
    log(LogLevel.POLL, msg, data)

def log_sync(msg: str, data: Optional[dict] = None):
    log(LogLevel.SYNC, msg, data)

def log_model(msg: str, data: Optional[dict] = None):
    log(LogLevel.MODEL, msg, data)

def log_alert(msg: str, data: Optional[dict] = None):
    log(LogLevel.ALERT, msg, data)

def log_info(msg: str, data: Optional[dict] = None):
    log(LogLevel.INFO, msg, data)
