"""
Locale-aware text lookup.
"""

from typing import Any, Dict, Optional
from callrelay.i18n.strings import LOCALES


class _KeepMissing(dict):
    def __missing__(self, key):
        return "{" + key + "}"


class Localizer:
    """
    Resolves text keys for a locale.

    Falls back to the default locale, then to the key itself.
    """

    def __init__(self, default_locale: str = "en-US", locales: Optional[Dict[str, Dict[str, str]]] = None):
        self.default_locale = default_locale
        self.locales = locales if locales is not None else LOCALES

    def text_for(self, locale: Optional[str], key: str, **params: Any) -> str:
        template = self.locales.get(locale or self.default_locale, {}).get(key)
        if template is None:
            template = self.locales.get(self.default_locale, {}).get(key, key)
        return template.format_map(_KeepMissing(params))

    def format_duration(self, locale: Optional[str], seconds: float) -> str:
        """Rough human duration, e.g. "5 minutes"."""
        if seconds < 45:
            return self.text_for(locale, "duration.seconds")
        minutes = round(seconds / 60)
        if minutes <= 1:
            return self.text_for(locale, "duration.minute")
        if minutes < 60:
            return self.text_for(locale, "duration.minutes", count=minutes)
        hours = round(minutes / 60)
        if hours <= 1:
            return self.text_for(locale, "duration.hour")
        return self.text_for(locale, "duration.hours", count=hours)
