"""
Environment-based configuration for the authentik client.

The embedding app is expected to call dotenv.load_dotenv() before reading settings,
so values may come from a .env file or the process environment:

    AUTHENTIK_URL            base URL of the authentik instance
    AUTHENTIK_CLIENT_ID      client id of the application
    AUTHENTIK_CLIENT_SECRET  client secret of the application
    AUTHENTIK_REDIRECT_URI   where users land after authenticating
    AUTHENTIK_SCOPES         space separated scopes (default "openid email profile")
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from oath_auth.claims import DEFAULT_SCOPES
from oath_auth.errors import ConfigurationError

ENV_VARS = {
    "endpoint": "AUTHENTIK_URL",
    "id": "AUTHENTIK_CLIENT_ID",
    "secret": "AUTHENTIK_CLIENT_SECRET",
    "redirect": "AUTHENTIK_REDIRECT_URI",
}


@dataclass(frozen=True)
class OathSettings:
    endpoint: str
    id: str
    secret: str = field(repr=False)
    redirect: str
    scopes: tuple[str, ...] = DEFAULT_SCOPES

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "OathSettings":
        """Read settings from `environ` (defaults to os.environ); missing values raise ConfigurationError."""
        environ = os.environ if environ is None else environ
        values = {}
        for key, var in ENV_VARS.items():
            value = environ.get(var, "").strip()
            if not value:
                raise ConfigurationError(f"missing environment variable {var}")
            values[key] = value

        raw_scopes = environ.get("AUTHENTIK_SCOPES", "").split()
        return cls(scopes=tuple(raw_scopes) or DEFAULT_SCOPES, **values)
