"""
Call management components for the relay service.
"""

from .state import CallState, CallSide, Endpoint, RelayRecord
from .errors import (
    CallError,
    CallValidationError,
    CallDeliveryError,
    CallPermissionError,
    CallCoordinationError,
)

__all__ = [
    "CallState",
    "CallSide",
    "Endpoint",
    "RelayRecord",
    "CallError",
    "CallValidationError",
    "CallDeliveryError",
    "CallPermissionError",
    "CallCoordinationError",
]
