"""Shared fixtures for the authentik client tests."""

import base64

import pytest

from oath_auth import Oath

ENDPOINT = "https://authentik.example"
AUTHORIZE_URL = f"{ENDPOINT}/application/o/authorize/"
TOKEN_URL = f"{ENDPOINT}/application/o/token/"
USERINFO_URL = f"{ENDPOINT}/application/o/userinfo/"

CLIENT_ID = "app-client"
CLIENT_SECRET = "s3cret-value"
REDIRECT_URI = "https://app.example/callback"
BASIC_AUTH = "Basic " + base64.b64encode(f"{CLIENT_ID}:{CLIENT_SECRET}".encode()).decode()

USERINFO = {
    "sub": "f1e2d3c4",
    "name": "Ada Lovelace",
    "given_name": "Ada",
    "preferred_username": "ada",
    "nickname": "ada",
    "groups": ["authentik Admins", "engineering"],
    "email": "ada@example.org",
    "email_verified": True,
}


@pytest.fixture
def authentik() -> Oath:
    """Client configured against the fake authentik instance."""
    return Oath(ENDPOINT, id=CLIENT_ID, secret=CLIENT_SECRET, redirect=REDIRECT_URI)
