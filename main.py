"""
FastAPI app: authentik OAuth2/OIDC login + session-based role auth.

Decisions:
- .env is loaded before importing oath_auth so AUTHENTIK_* and SESSION_SECRET are
  available when the client and auth router are created (Ruff E402 suppressed).
- ROLE_GROUPS: role name -> set of authentik group names, matched against the
  `groups` claim returned with the profile scope.
- ROLE_INHERITS: e.g. admin -> support, user; used to expand roles after matching.
- Session secret from SESSION_SECRET env; default "change-me" is for dev only.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

load_dotenv()

from oath_auth import (  # noqa: E402
    Oath,
    OathSettings,
    create_auth_router,
    require_any_role,
    require_roles,
    touch_session_activity,
)

logging.basicConfig(level=logging.DEBUG if os.getenv("DEBUG") else logging.INFO)

SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me")
settings = OathSettings.from_env()

# Role -> authentik group names. Any membership in one of these groups grants the role.
ROLE_GROUPS = {
    "admin": {os.getenv("ADMIN_GROUP", "authentik Admins")},
    "support": {os.getenv("SUPPORT_GROUP", "support")},
    "user": {os.getenv("USER_GROUP", "users")},
}

# Inheritance: admin implies support & user; support implies user.
ROLE_INHERITS = {
    "admin": {"support", "user"},
    "support": {"user"},
    "user": set(),
}

app = FastAPI()
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET)


@app.middleware("http")
async def update_activity(request: Request, call_next):
    """Update last_activity_at for logged-in users so idle timeout is accurate."""
    response = await call_next(request)
    if "user" in request.session:
        touch_session_activity(request)
    return response


app.include_router(
    create_auth_router(Oath.from_settings(settings), settings.scopes, ROLE_GROUPS, ROLE_INHERITS)
)


@app.get("/")
async def home(request: Request):
    user = request.session.get("user")
    return {"logged_in": bool(user), "user": user}


@app.get("/admin")
async def admin_area(_=Depends(require_roles("admin"))):
    return {"ok": True, "area": "admin"}


@app.get("/support-or-admin")
async def support_or_admin_area(_=Depends(require_any_role("support", "admin"))):
    return {"ok": True, "area": "support or admin"}
