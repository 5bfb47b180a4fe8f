"""
Mappings of OpenID scopes to the standard claims they unlock.

Each scope contributes one claim group, declared as a TypedDict. The claims a caller
can expect from the userinfo endpoint are the union of the groups for the scopes it
requested; unknown (provider-specific) scopes contribute nothing.

Python cannot derive a type from a list value, so the derivation happens at runtime
through derive_claims_type(). The default scope set is also available statically as
DefaultClaims. Nothing here runs against provider responses unless validate_claims()
is called explicitly: userinfo payloads are otherwise passed through untouched.

See OIDC Core 1.0, sections 5.1 (standard claims) and 5.4 (scope claims).
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union, get_type_hints

from pydantic import StringConstraints, TypeAdapter, ValidationError
from typing_extensions import TypedDict

from oath_auth.errors import ClaimsValidationError

Email = Annotated[str, StringConstraints(pattern=r"^[^@\s]+@[^@\s]+$")]
Birthdate = Annotated[str, StringConstraints(pattern=r"^\d{4}(-\d{2}-\d{2})?$")]
Locale = Annotated[str, StringConstraints(pattern=r"^[a-z]{2}-[A-Z]{2}$")]
# E.164-like, with an optional RFC 3966 extension
PhoneNumber = Annotated[str, StringConstraints(pattern=r"^\+\d+(;ext=\d+)?$")]


class OpenIDClaims(TypedDict):
    """Always present once `openid` is requested."""

    sub: str


class ProfileClaims(TypedDict, total=False):
    """Claims unlocked by the `profile` scope; the provider may omit any of them."""

    name: str
    given_name: str
    family_name: str
    middle_name: str
    nickname: str
    preferred_username: str
    profile: str
    picture: str
    website: str
    gender: str
    birthdate: Birthdate
    zoneinfo: str
    locale: Locale
    updated_at: int
    # authentik extension
    groups: list[str]


class EmailClaims(TypedDict, total=False):
    email: Email
    email_verified: bool


class Address(TypedDict, total=False):
    formatted: str
    street_address: str
    locality: str
    region: str
    postal_code: str
    country: str


class AddressClaims(TypedDict, total=False):
    address: Address


class UnverifiedPhoneClaims(TypedDict, total=False):
    phone_number: str
    phone_number_verified: Literal[False]


class VerifiedPhoneClaims(TypedDict):
    phone_number: PhoneNumber
    phone_number_verified: Literal[True]


PhoneClaims = Union[UnverifiedPhoneClaims, VerifiedPhoneClaims]


class DefaultClaims(OpenIDClaims, EmailClaims, ProfileClaims):
    """Claims for the default scope set: openid, email, profile."""


DEFAULT_SCOPES: tuple[str, ...] = ("openid", "email", "profile")

# scope -> alternative claim groups; more than one alternative means a tagged union
SCOPE_CLAIMS: dict[str, tuple[type, ...]] = {
    "openid": (OpenIDClaims,),
    "profile": (ProfileClaims,),
    "email": (EmailClaims,),
    "address": (AddressClaims,),
    "phone": (UnverifiedPhoneClaims, VerifiedPhoneClaims),
}

_ADAPTERS: dict[str, TypeAdapter] = {
    scope: TypeAdapter(Union[groups] if len(groups) > 1 else groups[0])
    for scope, groups in SCOPE_CLAIMS.items()
}


@dataclass(frozen=True)
class ClaimFieldSet:
    """Claim fields guaranteed to be offered for a set of requested scopes."""

    scopes: tuple[str, ...]
    fields: Mapping[str, Any]
    required: frozenset[str]

    @property
    def optional(self) -> frozenset[str]:
        return frozenset(self.fields) - self.required

    def __contains__(self, name: object) -> bool:
        return name in self.fields


def derive_claims_type(scopes: Iterable[str]) -> ClaimFieldSet:
    """
    Merge the claim groups of every known scope in `scopes`.

    Unknown scopes are skipped silently. A field is required only if every
    alternative of its group requires it, so the phone group adds no required
    fields. When alternatives disagree on a field's type the annotations are unioned.
    """
    known: list[str] = []
    fields: dict[str, Any] = {}
    required: set[str] = set()

    for scope in scopes:
        groups = SCOPE_CLAIMS.get(scope)
        if groups is None or scope in known:
            continue
        known.append(scope)

        required |= set.intersection(*(set(group.__required_keys__) for group in groups))
        for group in groups:
            for name, annotation in get_type_hints(group, include_extras=True).items():
                current = fields.get(name)
                if current is None or current == annotation:
                    fields[name] = annotation
                else:
                    fields[name] = Union[current, annotation]

    return ClaimFieldSet(
        scopes=tuple(known), fields=MappingProxyType(fields), required=frozenset(required)
    )


def validate_claims(claims: Any, scopes: Iterable[str] = DEFAULT_SCOPES) -> Any:
    """
    Check `claims` against the groups of the requested scopes.

    Validation is strict (no coercion) and ignores fields outside the requested
    groups. Returns `claims` unchanged; raises ClaimsValidationError listing every
    problem found.
    """
    if not isinstance(claims, dict):
        raise ClaimsValidationError(
            "claims must be a JSON object", [f"got {type(claims).__name__}"]
        )

    errors: list[str] = []
    for scope in dict.fromkeys(scopes):
        adapter = _ADAPTERS.get(scope)
        if adapter is None:
            continue
        try:
            adapter.validate_python(claims, strict=True)
        except ValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(part) for part in error["loc"])
                errors.append(f"{scope}: {location}: {error['msg']}")

    if errors:
        raise ClaimsValidationError(
            f"claims do not match requested scopes ({len(errors)} problem(s))", errors
        )
    return claims
