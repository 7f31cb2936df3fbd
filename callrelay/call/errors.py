"""
Call errors. Each carries a localization key that is shown to the user.
"""

from typing import Any, Dict, Optional


class CallError(Exception):
    """Base class for errors raised by call operations."""

    status_code = 400

    def __init__(self, key: str, call_id: Optional[str] = None, **params: Any):
        super().__init__(key)
        self.key = key
        self.call_id = call_id
        self.params: Dict[str, Any] = params

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": self.key}
        if self.call_id:
            data["call_id"] = self.call_id
        return data


class CallValidationError(CallError):
    """Initiation rejected before any state was created."""


class CallDeliveryError(CallError):
    """The other side could not be reached; nothing was persisted."""

    status_code = 502


class CallPermissionError(CallError):
    """The acting side may not perform this action right now."""

    status_code = 403


class CallCoordinationError(CallError):
    """The call could not be located or rebuilt on this shard."""

    status_code = 404


class CallNotFoundError(CallCoordinationError):
    def __init__(self, call_id: Optional[str] = None):
        super().__init__("callNotFound", call_id=call_id)
