"""
Serial Transport - Single responsibility: serial communication

Non-blocking line I/O. The controller replies asynchronously, so send()
never waits; read_lines() returns whatever complete lines have arrived.

Thread-safe: Uses lock to prevent concurrent access from multiple API requests.
"""

import serial
import serial.tools.list_ports
import time
import threading
from typing import List, Optional
from dataclasses import dataclass
from .logger import log_serial, log_ok


BAUD_RATE = 57600
DEFAULT_TIMEOUT = 0


@dataclass
class SerialConfig:
    baud_rate: int = BAUD_RATE
    timeout: float = DEFAULT_TIMEOUT
    connect_delay: float = 0.5
    encoding: str = "utf-8"


class SerialTransport:
    """
    Handles raw serial communication with the controller.

    Thread-safe: All send/read operations are protected by a lock.
    Partial lines are buffered until their terminator arrives.
    """

    def __init__(self, config: Optional[SerialConfig] = None):
        self.config = config or SerialConfig()
        self._serial: Optional[serial.Serial] = None
        self._connected = False
        self._lock = threading.Lock()  # Prevent concurrent serial access
        self._buffer = bytearray()

    @staticmethod
    def list_ports() -> list[str]:
        """List available serial ports"""
        ports = serial.tools.list_ports.comports()
        return [port.device for port in ports]

    def connect(self, port: str) -> bool:
        """Connect to serial port"""
        try:
            self._serial = serial.Serial(
                port,
                self.config.baud_rate,
                timeout=self.config.timeout
            )
        except serial.SerialException as e:
            self._connected = False
            raise ConnectionError(f"Failed to connect: {e}")

        time.sleep(self.config.connect_delay)
        self._serial.reset_input_buffer()
        self._buffer.clear()
        self._connected = True
        log_ok(f"Serial port open: {port}", {"baud": self.config.baud_rate})
        return True

    def disconnect(self) -> None:
        """Disconnect from serial port"""
        with self._lock:
            if self._serial:
                self._serial.close()
                self._serial = None
            self._buffer.clear()
            self._connected = False

    def send(self, line: str) -> None:
        """
        Write one newline-terminated line.

        Thread-safe: Acquires lock before sending to prevent interleaved lines.
        """
        if not self._serial or not self._connected:
            raise ConnectionError("Not connected")

        with self._lock:
            log_serial(">>>", line)
            self._serial.write(f"{line}\n".encode(self.config.encoding))

    def read_lines(self) -> List[str]:
        """Drain the input buffer and return complete, non-empty lines."""
        if not self._serial or not self._connected:
            raise ConnectionError("Not connected")

        with self._lock:
            waiting = self._serial.in_waiting
            if waiting:
                self._buffer.extend(self._serial.read(waiting))

            lines: List[str] = []
            while True:
                end = self._buffer.find(b"\n")
                if end < 0:
                    break
                raw = bytes(self._buffer[:end])
                del self._buffer[:end + 1]
                text = raw.decode(self.config.encoding, errors="replace").strip()
                if text:
                    log_serial("<<<", text)
                    lines.append(text)
            return lines

    def clear_buffer(self) -> None:
        """Clear input buffer"""
        with self._lock:
            if self._serial:
                self._serial.reset_input_buffer()
            self._buffer.clear()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def in_waiting(self) -> int:
        """Bytes waiting in input buffer"""
        return self._serial.in_waiting if self._serial else 0
