"""
Input rules for the link registry: target URLs and custom aliases.
"""

import re
from typing import Optional
from urllib.parse import urlsplit

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from smartshort_app.config import settings
from smartshort_app.exceptions import InvalidAlias, InvalidUrl

_http_url = TypeAdapter(AnyHttpUrl)
_WHITESPACE = re.compile(r"\s")
_ALIAS_CHARS = re.compile(r"^[A-Za-z0-9-]+$")


def validate_original_url(value: Optional[str]) -> str:
    """
    Return the URL to store, or raise InvalidUrl.

    Pydantic only checks the URL here; the caller's string is stored
    as given (minus surrounding whitespace) so redirects are exact.
    """
    if not value or not isinstance(value, str):
        raise InvalidUrl("Original URL is required")
    candidate = value.strip()
    if _WHITESPACE.search(candidate):
        raise InvalidUrl()
    try:
        _http_url.validate_python(candidate)
    except ValidationError:
        raise InvalidUrl()
    return candidate


def validate_custom_alias(alias: str) -> str:
    """Letters, digits and hyphens; length bounds from settings."""
    alias = (alias or "").strip()
    if not (settings.custom_alias_min_length <= len(alias) <= settings.custom_alias_max_length):
        raise InvalidAlias(
            f"Custom alias must be {settings.custom_alias_min_length}-"
            f"{settings.custom_alias_max_length} characters long"
        )
    if not _ALIAS_CHARS.match(alias):
        raise InvalidAlias("Custom alias may only contain letters, digits and hyphens")
    return alias


def extract_domain(url: str) -> Optional[str]:
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None
