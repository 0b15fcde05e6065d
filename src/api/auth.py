# src/api/auth.py — v1
"""Caller identity for the HTTP surface.

Identity is asserted by an upstream gateway in a request header; this
service only refuses requests that arrive without one.
"""

from __future__ import annotations

import re
from typing import Mapping

USER_HEADER = "X-User-Id"

_VALID_USER_ID = re.compile(r"^[A-Za-z0-9_.:@-]{1,128}$")


class AuthenticationError(Exception):
    """No usable identity on the request."""


class HeaderAuthenticator:
    """Resolve the user id from a trusted header.

    Args:
        header: Header carrying the user id.
    """

    def __init__(self, header: str = USER_HEADER) -> None:
        self._header = header

    @property
    def header(self) -> str:
        return self._header

    def authenticate(self, headers: Mapping[str, str]) -> str:
        """Return the user id, or raise AuthenticationError."""
        value = (headers.get(self._header) or "").strip()
        if not value:
            raise AuthenticationError(f"Missing {self._header} header")
        if not _VALID_USER_ID.match(value):
            raise AuthenticationError(f"Malformed {self._header} header")
        return value
