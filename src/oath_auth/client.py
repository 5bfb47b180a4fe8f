"""
authentik OAuth2 / OIDC client.

Builds authorization URLs and resolves authorization codes to user claims through two
sequential POSTs: code -> access token (/application/o/token/), then access token ->
claims (/application/o/userinfo/). Both requests authenticate the application with
HTTP Basic (client_id:client_secret).

The client only holds immutable configuration, so one instance can serve concurrent
callers. There is no retry or timeout here; wrap calls to add either.

Example:
    authentik = Oath(
        "https://authentik.example",
        id=CLIENT_ID,
        secret=CLIENT_SECRET,
        redirect="https://app.example/callback",
    )
    auth_url = authentik.url(scopes=["openid", "profile", "email"], state=expected_state)

    # in the callback, after checking state == expected_state
    user = await authentik.user(code)
"""

import logging
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence, TypeVar, overload

import httpx
from authlib.common.urls import add_params_to_uri

from oath_auth.claims import DEFAULT_SCOPES, DefaultClaims, validate_claims
from oath_auth.config import OathSettings
from oath_auth.errors import ClaimsValidationError, ConfigurationError, OathError, ProtocolError

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/application/o/authorize/"
TOKEN_PATH = "/application/o/token/"
USERINFO_PATH = "/application/o/userinfo/"

CREDENTIAL_KEYS = ("id", "secret", "redirect")

ClaimsT = TypeVar("ClaimsT")


class ExchangeState(str, Enum):
    """Progress of a single user() call."""

    IDLE = "idle"
    EXCHANGING_TOKEN = "exchanging_token"
    FETCHING_USERINFO = "fetching_userinfo"
    DONE = "done"
    FAILED = "failed"


def _is_json(response: httpx.Response) -> bool:
    media_type = response.headers.get("content-type", "").split(";", 1)[0]
    return media_type.strip().lower() == "application/json"


def _parse_endpoint(endpoint: str) -> httpx.URL:
    if not endpoint:
        raise ConfigurationError("missing endpoint")
    try:
        url = httpx.URL(endpoint)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(f"invalid endpoint {endpoint!r}: {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"endpoint must be an absolute http(s) URL, got {endpoint!r}")
    return url


class Oath:
    """Client for interfacing with one authentik application."""

    def __init__(
        self,
        endpoint: str,
        credentials: Optional[Mapping[str, str]] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs: str,
    ):
        """
        Create a client for the authentik instance at `endpoint`.

        Credentials are given either as a mapping with the keys id, secret and redirect,
        or as keyword arguments of the same names. `http_client` is an optional shared
        httpx.AsyncClient; it is used as-is and never closed here.

        Raises:
            ConfigurationError: a credential is missing or the endpoint is not a URL.
        """
        merged = {**(credentials or {}), **kwargs}
        unexpected = sorted(set(merged) - set(CREDENTIAL_KEYS))
        if unexpected:
            raise ConfigurationError(f"unexpected credential keys: {', '.join(unexpected)}")
        for key in CREDENTIAL_KEYS:
            if not merged.get(key):
                raise ConfigurationError(f"missing client {key}")

        self._endpoint = _parse_endpoint(endpoint)
        self._client_id = merged["id"]
        self._client_secret = merged["secret"]
        self._redirect_uri = merged["redirect"]
        self._http_client = http_client

    @classmethod
    def from_settings(cls, settings: OathSettings, **kwargs: Any) -> "Oath":
        """Build a client from loaded OathSettings; kwargs are passed to the constructor."""
        return cls(
            settings.endpoint,
            id=settings.id,
            secret=settings.secret,
            redirect=settings.redirect,
            **kwargs,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **kwargs: Any) -> "Oath":
        """Build a client from AUTHENTIK_* environment variables (see oath_auth.config)."""
        return cls.from_settings(OathSettings.from_env(environ), **kwargs)

    @property
    def endpoint(self) -> str:
        return str(self._endpoint)

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(endpoint={self.endpoint!r}, "
            f"client_id={self._client_id!r}, redirect_uri={self._redirect_uri!r})"
        )

    def url(self, *, scopes: Sequence[str], state: str) -> str:
        """
        Generate the URL that starts the authorization code flow.

        `scopes` are sent space-joined in the given order. `state` is passed through
        untouched; generating and checking it is up to the caller.
        """
        if isinstance(scopes, str):
            raise TypeError("scopes must be a sequence of scope strings, not a single str")
        return add_params_to_uri(
            self._url(AUTHORIZE_PATH),
            [
                ("client_id", self._client_id),
                ("redirect_uri", self._redirect_uri),
                ("response_type", "code"),
                ("scope", " ".join(scopes)),
                ("state", state),
            ],
        )

    @overload
    async def user(
        self, code: str, *, validate: bool = ..., scopes: Optional[Iterable[str]] = ...
    ) -> DefaultClaims: ...

    @overload
    async def user(
        self,
        code: str,
        claims_type: type[ClaimsT],
        *,
        validate: bool = ...,
        scopes: Optional[Iterable[str]] = ...,
    ) -> ClaimsT: ...

    async def user(self, code, claims_type=DefaultClaims, *, validate=False, scopes=None):
        """
        Exchange `code` for an access token and fetch the logged in user's claims.

        `claims_type` only informs type checkers of the expected shape; the userinfo
        payload is returned as parsed. Pass validate=True (with the scopes requested in
        url()) to check the payload against the claim groups of those scopes.

        Raises:
            ProtocolError: either response was not JSON or lacked required content.
            ClaimsValidationError: validate=True and the claims did not match.
            httpx.HTTPError: transport failures, unwrapped.
        """
        if self._http_client is not None:
            return await self._resolve(self._http_client, code, validate, scopes)
        async with httpx.AsyncClient(timeout=None) as client:
            return await self._resolve(client, code, validate, scopes)

    async def _resolve(
        self,
        client: httpx.AsyncClient,
        code: str,
        validate: bool,
        scopes: Optional[Iterable[str]],
    ) -> dict[str, Any]:
        state = ExchangeState.IDLE
        try:
            state = self._transition(state, ExchangeState.EXCHANGING_TOKEN)
            access_token = await self._fetch_token(client, code)

            state = self._transition(state, ExchangeState.FETCHING_USERINFO)
            claims = await self._fetch_user(client, access_token, validate, scopes)
        except (OathError, httpx.HTTPError) as exc:
            logger.warning("authentik exchange failed while %s: %s", state.value, type(exc).__name__)
            self._transition(state, ExchangeState.FAILED)
            raise

        self._transition(state, ExchangeState.DONE)
        return claims

    async def _fetch_token(self, client: httpx.AsyncClient, code: str) -> str:
        stage = ExchangeState.EXCHANGING_TOKEN
        response = await self._post(
            client,
            TOKEN_PATH,
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self._redirect_uri,
            },
        )
        token = self._json(response, stage, "invalid token response")

        access_token = token.get("access_token") if isinstance(token, dict) else None
        if not isinstance(access_token, str) or not access_token:
            message = "missing access_token in token response"
            if isinstance(token, dict) and token.get("error"):
                message += f" ({token['error']}: {token.get('error_description', '')})"
            raise ProtocolError(
                message, text=response.text, status_code=response.status_code, stage=stage
            )
        return access_token

    async def _fetch_user(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        validate: bool,
        scopes: Optional[Iterable[str]],
    ) -> dict[str, Any]:
        stage = ExchangeState.FETCHING_USERINFO
        response = await self._post(client, USERINFO_PATH, {"access_token": access_token})
        claims = self._json(response, stage, "invalid user data")

        if not isinstance(claims, dict) or not claims:
            raise ProtocolError(
                "empty user data in userinfo response",
                text=response.text,
                status_code=response.status_code,
                stage=stage,
            )

        if validate:
            try:
                validate_claims(claims, DEFAULT_SCOPES if scopes is None else scopes)
            except ClaimsValidationError as exc:
                exc.text, exc.status_code, exc.stage = response.text, response.status_code, stage
                raise
        return claims

    def _json(self, response: httpx.Response, stage: ExchangeState, what: str) -> Any:
        if not _is_json(response):
            raise ProtocolError(
                f"{what}, got {response.text}",
                text=response.text,
                status_code=response.status_code,
                stage=stage,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(
                f"{what}, body is not valid JSON",
                text=response.text,
                status_code=response.status_code,
                stage=stage,
            ) from exc

    async def _post(
        self, client: httpx.AsyncClient, path: str, params: dict[str, str]
    ) -> httpx.Response:
        url = self._url(path)
        logger.debug("POST %s", url)
        return await client.post(
            url,
            data=params,
            auth=(self._client_id, self._client_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

    def _url(self, path: str) -> str:
        # an absolute path replaces any path on the endpoint
        return str(self._endpoint.join(path))

    @staticmethod
    def _transition(current: ExchangeState, new: ExchangeState) -> ExchangeState:
        logger.debug("authentik exchange %s -> %s", current.value, new.value)
        return new
