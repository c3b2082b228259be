"""Language and region normalisation backed by the ISO tables in pycountry.

Both functions are total: anything that cannot be resolved yields ``None``
and is dropped by the caller without a warning.
"""

from __future__ import annotations

import re
from typing import Any

import pycountry

_LOCALE_SPLIT_RE = re.compile(r"[-_]")


def _lookup(database: Any, value: str) -> Any | None:
    """Exact code match first, then pycountry's fuzzy name lookup.

    ``lookup`` alone is unreliable for short codes: ``"en"`` matches the
    ISO 639-3 language *En* (``enc``) by name before English by code.
    """
    code = value.lower()
    fields = {2: ("alpha_2",), 3: ("alpha_3", "bibliographic")}.get(len(code), ())
    for field in fields:
        try:
            match = database.get(**{field: code})
        except KeyError:
            match = None
        if match is not None:
            return match
    try:
        return database.lookup(value)
    except LookupError:
        return None


def normalize_language(value: str | None) -> str | None:
    """Coerce *value* to an ISO 639-1 language code.

    Accepts a two-letter code (``"en"``), a locale tag (``"en-US"``,
    ``"zh_CN"``), a three-letter ISO 639-2/639-3 code (``"fra"``,
    ``"fre"``), or a language name (``"German"``).

    >>> normalize_language("en-US")
    'en'
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    primary = _LOCALE_SPLIT_RE.split(text, maxsplit=1)[0]
    for candidate in dict.fromkeys((primary, text)):
        if not candidate:
            continue
        language = _lookup(pycountry.languages, candidate)
        code = getattr(language, "alpha_2", None)
        if code:
            return code.lower()
    return None


def normalize_region(value: str | None) -> str | None:
    """Coerce *value* to an upper-case ISO 3166-1 alpha-2 code.

    Accepts alpha-2 and alpha-3 codes in any case, and country names.

    >>> normalize_region("united kingdom")
    'GB'
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    country = _lookup(pycountry.countries, text)
    if country is None:
        return None
    return country.alpha_2.upper()
