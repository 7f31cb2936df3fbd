"""
Persistence layer over the shared database.
"""

from .repository import CallRepository, MailboxInfo, NumberLookup

__all__ = ["CallRepository", "MailboxInfo", "NumberLookup"]
