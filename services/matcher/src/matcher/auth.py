from __future__ import annotations

import jwt

from matcher.errors import UnauthorizedError

TOKEN_HEADER = "x-auth-token"
TOKEN_ALGORITHM = "HS256"
DEV_SECRET = "dev-insecure-jwt-secret-change-me"


def issue_token(user_id: str, secret: str) -> str:
    """Sign a token for ``user_id``. Tokens carry no expiry claim."""
    return jwt.encode({"id": user_id}, secret, algorithm=TOKEN_ALGORITHM)


def verify_token(token: str | None, secret: str) -> str:
    """Return the user id carried by a valid token."""
    if not token:
        raise UnauthorizedError("No token, authorization denied")
    try:
        payload = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError("Token is not valid") from exc

    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise UnauthorizedError("Token is not valid")
    return user_id
