"""
Protocol for identity-provider clients used by the auth router.

Implementations (e.g. Oath) build the authorization URL the user is redirected to and
resolve the code from the callback into user claims.
"""

from typing import Any, Protocol, Sequence, runtime_checkable


@runtime_checkable
class ClaimsProvider(Protocol):
    """Protocol for an OAuth2/OIDC client that resolves authorization codes to claims."""

    def url(self, *, scopes: Sequence[str], state: str) -> str:
        """Return the authorization URL to redirect the user to."""
        ...

    async def user(self, code: str) -> Any:
        """Exchange the authorization code and return the user's claims."""
        ...
