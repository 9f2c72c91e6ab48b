"""Loopback callback server and port allocation."""

from oxa.auth.server.callback_server import (
    CallbackOutcome,
    CallbackServer,
    Denied,
    Granted,
    InvalidState,
    TimedOut,
)
from oxa.auth.server.ports import find_available_port

__all__ = [
    "CallbackServer",
    "CallbackOutcome",
    "Granted",
    "Denied",
    "InvalidState",
    "TimedOut",
    "find_available_port",
]
