"""
Database models for the call relay service.
"""

from .call import Call, CallMessage
from .number import Guild, Number, Mailbox

__all__ = ["Call", "CallMessage", "Guild", "Number", "Mailbox"]
