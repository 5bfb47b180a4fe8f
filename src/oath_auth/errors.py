"""
Errors raised by the authentik client.

Everything derives from OathError so callers can tell "the provider answered with
something unusable" apart from transport failures, which surface as httpx errors.

Example:
    try:
        user = await authentik.user(code)
    except OathError as err:
        logger.error("fatal error contacting authentik: %s", err)
"""

from __future__ import annotations

from typing import Any, Optional


class OathError(Exception):
    """Base error for this package."""


class ConfigurationError(OathError):
    """Client configuration is missing or malformed."""


class ProtocolError(OathError):
    """
    The provider responded, but not in the shape the authorization code flow expects.

    text holds the raw response body (never parsed) for diagnostics; stage is the
    exchange step that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        text: Optional[str] = None,
        status_code: Optional[int] = None,
        stage: Any = None,
    ):
        super().__init__(message)
        self.text = text
        self.status_code = status_code
        self.stage = stage


class ClaimsValidationError(ProtocolError):
    """Userinfo claims do not match the shape promised by the requested scopes."""

    def __init__(self, message: str, errors: list[str], **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors
