"""
Session-based role helpers and FastAPI dependencies.

Reads roles from request.session (set by the auth callback) and provides dependency
factories for route protection: require_role, require_roles, require_any_role.

Optional: set ROLE_REFRESH_INTERVAL_SECONDS to require re-login when the claims the
roles came from are older than that (default 0 = no refresh). Set
SESSION_MAX_IDLE_SECONDS to treat the user as inactive after that long without a
request (default 0 = disabled).
"""

import logging
import os
import time
from typing import Callable, Set

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


def _role_refresh_interval_seconds() -> int:
    return int(os.getenv("ROLE_REFRESH_INTERVAL_SECONDS", "0"))


def _session_max_idle_seconds() -> int:
    return int(os.getenv("SESSION_MAX_IDLE_SECONDS", "0"))


def get_roles(request: Request) -> Set[str]:
    """Return the role names stored in the session (empty if not authenticated)."""
    raw = request.session.get("roles", [])
    return {role.lower() for role in raw} if isinstance(raw, list) else set()


def is_session_stale(request: Request) -> bool:
    """
    True when the roles were computed from claims older than
    ROLE_REFRESH_INTERVAL_SECONDS, or the user has been idle longer than
    SESSION_MAX_IDLE_SECONDS.
    """
    interval = _role_refresh_interval_seconds()
    max_idle = _session_max_idle_seconds()
    now = int(time.time())

    if interval > 0 and now - request.session.get("claims_fetched_at", 0) >= interval:
        return True
    if max_idle > 0 and now - request.session.get("last_activity_at", now) >= max_idle:
        return True
    return False


def touch_session_activity(request: Request) -> None:
    """Update last_activity_at so idle timeout is based on recent requests."""
    request.session["last_activity_at"] = int(time.time())


def _require(allowed: Callable[[Set[str]], bool], detail: str):
    async def _dep(request: Request):
        if "user" not in request.session:
            raise HTTPException(status_code=401, detail="Not authenticated")
        if is_session_stale(request):
            raise HTTPException(
                status_code=401,
                detail="Session expired or inactive; please log in again",
            )
        touch_session_activity(request)
        if not allowed(get_roles(request)):
            logger.info("denied %s for sub=%s", request.url.path, request.session["user"].get("sub"))
            raise HTTPException(status_code=403, detail=detail)
        return True

    return _dep


def require_roles(*required_roles: str):
    """
    Dependency: user must have ALL of the given roles (AND semantics).
    Use as: Depends(require_roles("admin", "editor")).
    """
    required = {role.lower() for role in required_roles if role}
    return _require(lambda roles: required <= roles, "Forbidden (missing required roles)")


def require_role(role: str):
    """Dependency: user must have the given role. Use as: Depends(require_role('admin'))."""
    role = role.lower()
    return _require(lambda roles: role in roles, "Forbidden (missing role)")


def require_any_role(*roles: str):
    """Dependency: user must have at least one of the given roles (OR semantics)."""
    accepted = {r.lower() for r in roles if r}
    return _require(lambda user_roles: bool(accepted & user_roles), "Forbidden (no acceptable role)")
