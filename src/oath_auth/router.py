"""
FastAPI auth router: login, callback, /me, logout.

Drives the authorization code flow against a ClaimsProvider (normally an Oath
client). The router owns the CSRF state: it is generated on /login, kept in the
Starlette session and compared on /auth/callback. Roles are computed from the
`groups` claim with role_groups and role_inherits.
"""

import logging
import os
import secrets
import time
from typing import Mapping, Optional, Sequence

from authlib.common.security import generate_token
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse

from oath_auth.authz_config import compute_roles
from oath_auth.claims import DEFAULT_SCOPES
from oath_auth.errors import OathError
from oath_auth.protocol import ClaimsProvider

logger = logging.getLogger(__name__)

STATE_KEY = "oauth_state"
SESSION_USER_CLAIMS = ("sub", "name", "preferred_username", "email")


def create_auth_router(
    provider: ClaimsProvider,
    scopes: Sequence[str] = DEFAULT_SCOPES,
    role_groups: Optional[Mapping[str, set]] = None,
    role_inherits: Optional[Mapping[str, set]] = None,
):
    """Create an APIRouter with /login, /auth/callback, /me, and /logout endpoints."""
    role_groups = role_groups or {}
    role_inherits = role_inherits or {}
    router = APIRouter()

    @router.get("/login")
    async def login(request: Request):
        """Redirect the user to the authentik login page."""
        state = generate_token(32)
        request.session[STATE_KEY] = state
        return RedirectResponse(url=provider.url(scopes=list(scopes), state=state))

    @router.get("/auth/callback", name="auth_callback")
    async def auth_callback(request: Request):
        """Check state, exchange the code for claims, store user and roles, redirect to /me."""
        expected_state = request.session.pop(STATE_KEY, None)
        params = request.query_params

        if "error" in params:
            return JSONResponse(
                {"error": params["error"], "error_description": params.get("error_description")},
                status_code=400,
            )
        code, state = params.get("code"), params.get("state")
        if not code:
            return JSONResponse({"error": "missing code"}, status_code=400)
        if not expected_state or not state or not secrets.compare_digest(state, expected_state):
            logger.warning("rejected callback with mismatched state")
            return JSONResponse({"error": "invalid state"}, status_code=400)

        try:
            userinfo = await provider.user(code)
        except OathError as e:
            return JSONResponse({"error": str(e)}, status_code=400)

        request.session["user"] = {key: userinfo.get(key) for key in SESSION_USER_CLAIMS}
        groups = userinfo.get("groups") or []
        # In DEBUG, expose raw group names for troubleshooting
        if os.getenv("DEBUG"):
            request.session["groups"] = list(groups)
        request.session["claims_fetched_at"] = int(time.time())
        request.session["roles"] = sorted(compute_roles(groups, role_groups, role_inherits))
        logger.info("logged in sub=%s", userinfo.get("sub"))
        return RedirectResponse(url="/me", status_code=303)

    @router.get("/me")
    async def me(request: Request):
        """Return current user and roles; redirect to /login if not authenticated."""
        if "user" not in request.session:
            return RedirectResponse(url="/login")
        return {
            "user": request.session["user"],
            "roles": request.session.get("roles", []),
            "claims_fetched_at": request.session.get("claims_fetched_at"),
        }

    @router.get("/logout")
    async def logout(request: Request):
        """Clear session and redirect to home."""
        request.session.clear()
        return RedirectResponse(url="/")

    return router
