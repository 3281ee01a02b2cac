from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from devsource_platform.config import MIN_PASSWORD_ROUNDS


_JWT_ALG = "HS256"

# Tokens are valid for a fixed window; there is no refresh.
TOKEN_TTL = timedelta(hours=24)

ROLES = ("user", "admin")


class TokenError(Exception):
    """Base class for token verification failures."""

    code = "token_error"


class MalformedToken(TokenError):
    code = "token_malformed"


class InvalidToken(TokenError):
    code = "token_invalid"


class ExpiredToken(TokenError):
    code = "token_expired"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: str


def password_context(rounds: int = MIN_PASSWORD_ROUNDS) -> CryptContext:
    """pbkdf2_sha256 context hashing new passwords with `rounds` iterations.

    Hashes made with other round counts still verify.
    """
    if int(rounds) < MIN_PASSWORD_ROUNDS:
        raise ValueError("password_rounds_too_low")
    return CryptContext(
        schemes=["pbkdf2_sha256"],
        deprecated="auto",
        pbkdf2_sha256__default_rounds=int(rounds),
    )


def hash_password(pwd: CryptContext, password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return pwd.hash(password)


def verify_password(pwd: CryptContext, password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return pwd.verify(password, password_hash)
    except ValueError:
        # Not a hash this context recognizes.
        return False


def create_access_token(
    *,
    secret: str,
    user_id: int,
    role: str,
    now: Optional[datetime] = None,
) -> str:
    if not secret:
        raise ValueError("jwt_secret_blank")
    if role not in ROLES:
        raise ValueError("invalid_role")

    issued = now or datetime.now(timezone.utc)
    exp = issued + TOKEN_TTL

    payload: Dict[str, Any] = {
        "sub": str(int(user_id)),
        "role": role,
        "iat": int(issued.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def verify_access_token(*, token: Optional[str], secret: str) -> TokenClaims:
    """Check signature and expiry and return the asserted identity.

    Raises MalformedToken, InvalidToken or ExpiredToken.
    """
    if not secret:
        raise ValueError("jwt_secret_blank")
    if not token or not token.strip():
        raise MalformedToken("token_blank")

    try:
        payload = jwt.decode(
            token.strip(),
            secret,
            algorithms=[_JWT_ALG],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredToken(str(e)) from e
    except jwt.DecodeError as e:
        # Covers both unparseable tokens and InvalidSignatureError (a DecodeError subclass).
        if isinstance(e, jwt.InvalidSignatureError):
            raise InvalidToken(str(e)) from e
        raise MalformedToken(str(e)) from e
    except jwt.MissingRequiredClaimError as e:
        raise MalformedToken(str(e)) from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e

    sub = payload.get("sub")
    role = payload.get("role")
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise MalformedToken("token_sub_not_int")
    if role not in ROLES:
        raise MalformedToken("token_role_invalid")

    return TokenClaims(user_id=user_id, role=str(role))
