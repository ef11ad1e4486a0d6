"""
HTTP Basic-Auth parsing and the single-admin authorization check.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import re
from dataclasses import dataclass
from typing import Optional, Union

from paperframe.carousel import CarouselState

# credentials = auth-scheme 1*SP token68
# auth-scheme = "Basic" ; case insensitive
# token68     = 1*( ALPHA / DIGIT / "-" / "." / "_" / "~" / "+" / "/" ) *"="
CREDENTIALS_REGEXP = re.compile(r" *[Bb][Aa][Ss][Ii][Cc] +([A-Za-z0-9._~+/-]+=*) *")

# user-pass = userid ":" password
# userid    = *<TEXT excluding ":">
# password  = *TEXT
USER_PASS_REGEXP = re.compile(r"([^:]*):(.*)", re.DOTALL)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


def parse_basic_auth(header: Optional[str]) -> Optional[Credentials]:
    """
    Parse an Authorization header value into a credentials pair.

    Returns None for a missing header, another scheme, bad base64, or a
    decoded token without a ``:``.
    """
    if not header:
        return None
    payload = CREDENTIALS_REGEXP.fullmatch(header)
    if not payload:
        return None
    token = payload.group(1)
    if "=" not in token:
        # Some clients strip the trailing padding.
        token += "=" * (-len(token) % 4)
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    creds = USER_PASS_REGEXP.fullmatch(decoded)
    if not creds:
        return None
    return Credentials(username=creds.group(1), password=creds.group(2))


def _same(supplied: str, configured: str) -> bool:
    return hmac.compare_digest(supplied.encode("utf-8"), configured.encode("utf-8"))


def is_admin(credentials: Optional[Credentials], admin_user: str, admin_pass: str) -> bool:
    if credentials is None or not admin_user or not admin_pass:
        return False
    # Compare both before combining so timing does not reveal which one failed.
    user_ok = _same(credentials.username, admin_user)
    pass_ok = _same(credentials.password, admin_pass)
    return user_ok and pass_ok


def check_authorization(header: Optional[str], admin_user: str, admin_pass: str) -> bool:
    return is_admin(parse_basic_auth(header), admin_user, admin_pass)


@dataclass(frozen=True)
class RequestContext:
    """Everything a route may read: the loaded carousel and the auth flag."""

    state: CarouselState
    authorized: bool


@dataclass(frozen=True)
class Allowed:
    context: RequestContext


@dataclass(frozen=True)
class Denied:
    reason: str


GuardResult = Union[Allowed, Denied]


def check_admin(context: RequestContext) -> GuardResult:
    """Privileged-operation guard: continue with the context or stop the request."""
    if context.authorized is not True:
        return Denied("Unauthorized")
    return Allowed(context)
