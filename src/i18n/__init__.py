"""
Message translation for CertMigrate.

Catalogues live under ``locales/<language>/LC_MESSAGES/certmigrate.mo``.
Languages without a catalogue fall back to the untranslated (English) text.
"""

import gettext
import os
from typing import Dict, Optional

DOMAIN = "certmigrate"
DEFAULT_LANGUAGE = "en"
LOCALE_DIR = os.path.join(os.path.dirname(__file__), "locales")

_state = {"language": DEFAULT_LANGUAGE}
_catalogues: Dict[str, gettext.NullTranslations] = {}


def set_language(language: Optional[str]) -> None:
    """Switch the active language; falsy values restore the default."""
    _state["language"] = language or DEFAULT_LANGUAGE


def get_language() -> str:
    """Return the active language code."""
    return _state["language"]


def _catalogue(language: str) -> gettext.NullTranslations:
    if language not in _catalogues:
        _catalogues[language] = gettext.translation(
            DOMAIN, LOCALE_DIR, [language], fallback=True
        )
    return _catalogues[language]


def _(message: str) -> str:
    """Translate ``message`` into the active language."""
    return _catalogue(get_language()).gettext(message)


def ngettext(singular: str, plural: str, count: int) -> str:
    """Translate a message with plural forms."""
    return _catalogue(get_language()).ngettext(singular, plural, count)
