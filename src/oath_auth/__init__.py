"""
authentik OAuth2 / OpenID Connect client.

Exposes the client (Oath), the scope-to-claims schema (derive_claims_type,
validate_claims and the claim TypedDicts), errors, env-based settings, and the FastAPI
integration: the auth router factory plus session role helpers.
"""

from .authz_config import compute_roles
from .claims import (
    DEFAULT_SCOPES,
    SCOPE_CLAIMS,
    Address,
    AddressClaims,
    ClaimFieldSet,
    DefaultClaims,
    EmailClaims,
    OpenIDClaims,
    PhoneClaims,
    ProfileClaims,
    UnverifiedPhoneClaims,
    VerifiedPhoneClaims,
    derive_claims_type,
    validate_claims,
)
from .client import ExchangeState, Oath
from .config import OathSettings
from .errors import ClaimsValidationError, ConfigurationError, OathError, ProtocolError
from .protocol import ClaimsProvider
from .router import create_auth_router
from .session import (
    get_roles,
    is_session_stale,
    require_any_role,
    require_role,
    require_roles,
    touch_session_activity,
)

__all__ = [
    "Oath",
    "OathSettings",
    "ExchangeState",
    "ClaimsProvider",
    "OathError",
    "ConfigurationError",
    "ProtocolError",
    "ClaimsValidationError",
    "DEFAULT_SCOPES",
    "SCOPE_CLAIMS",
    "Address",
    "AddressClaims",
    "ClaimFieldSet",
    "DefaultClaims",
    "EmailClaims",
    "OpenIDClaims",
    "PhoneClaims",
    "ProfileClaims",
    "UnverifiedPhoneClaims",
    "VerifiedPhoneClaims",
    "derive_claims_type",
    "validate_claims",
    "compute_roles",
    "create_auth_router",
    "get_roles",
    "is_session_stale",
    "require_roles",
    "require_role",
    "require_any_role",
    "touch_session_activity",
]
