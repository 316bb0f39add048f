"""Supabase JWT handling.

Workers verify access tokens with the project's JWT secret. The session
layer only needs to peek at a persisted token's subject and expiry; it never
trusts those claims, because GoTrue re-validates the user on startup.
"""

from __future__ import annotations

import jwt as pyjwt
from schoolhub_shared.auth_models import AuthUser


def verify_token(token: str, jwt_secret: str) -> AuthUser:
    """Decode and validate a Supabase access token.

    Raises:
        pyjwt.ExpiredSignatureError: Token has expired.
        pyjwt.InvalidSignatureError: Signature doesn't match the secret.
        pyjwt.MissingRequiredClaimError: exp or sub missing.
        pyjwt.DecodeError: Malformed token.
    """
    payload = pyjwt.decode(
        token,
        jwt_secret,
        algorithms=["HS256"],
        audience="authenticated",
        options={"require": ["exp", "sub"]},
    )
    return _user_from_claims(payload)


def read_claims(token: str) -> AuthUser:
    """Decode a token without verifying it. For cached sessions only."""
    payload = pyjwt.decode(
        token,
        options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
    )
    if "sub" not in payload:
        raise pyjwt.MissingRequiredClaimError("sub")
    return _user_from_claims(payload)


def get_user_id(token: str, jwt_secret: str) -> str:
    return verify_token(token, jwt_secret).user_id


def _user_from_claims(payload: dict) -> AuthUser:
    return AuthUser(
        user_id=payload["sub"],
        email=payload.get("email", ""),
        role=payload.get("role", "authenticated"),
        exp=payload.get("exp"),
    )
