"""Core infrastructure layer - transports, request channel, parsing"""

from .serial_transport import SerialTransport, SerialConfig
from .transport import MockTransport
from .executor import RequestChannel

__all__ = ['SerialTransport', 'SerialConfig', 'MockTransport', 'RequestChannel']
