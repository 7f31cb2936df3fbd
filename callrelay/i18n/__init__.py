"""
Localization of user-facing text.
"""

from .localizer import Localizer

__all__ = ["Localizer"]
