"""
Shared authentication helpers.
Provides token creation, verification, and the API authentication gate.
"""

import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from flask import g, request
from dotenv import load_dotenv

from volunteer_backend.errors import TokenExpiredError, TokenInvalidError, UnauthorizedError

# Load .env only once here
load_dotenv()

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440))  # Default 24 hours

# Paths under /api/ that do not need a token
PUBLIC_API_PATHS = ("/api/auth/register", "/api/auth/login")


def get_jwt_secret() -> str:
    """
    Return the signing secret.

    Raises:
        RuntimeError: If JWT_SECRET is not configured.
    """
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET is missing. Set it in .env")
    return secret


# --- JWT CREATION ---
def create_token(email: str, now: Optional[datetime] = None) -> str:
    """
    Generate a signed token bound to an email identity.

    Args:
        email (str): The user's email, the only identity claim.
        now (datetime, optional): Issue time; defaults to the current UTC time.

    Returns:
        str: Encoded JWT string carrying email, iat and exp.
    """
    now = now or datetime.now(timezone.utc)

    payload = {
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=TOKEN_EXPIRATION_MINUTES),
    }

    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


# --- JWT VALIDATION ---
def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify a token and return its claims.

    Raises:
        TokenExpiredError: The token is past its exp claim.
        TokenInvalidError: The signature, format or claims are bad.
    """
    try:
        payload = jwt.decode(
            token,
            get_jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp", "iat", "email"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError:
        raise TokenInvalidError()

    return {"email": payload["email"]}


def bearer_token() -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer <token>' header."""
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def require_api_token() -> None:
    """
    before_request gate for the API.

    Every /api/ path except the two auth endpoints needs a valid bearer
    token. The verified email is stored on flask.g.current_email.
    """
    path = request.path
    if not path.startswith("/api/") or path in PUBLIC_API_PATHS:
        return None
    if request.method == "OPTIONS":
        return None

    token = bearer_token()
    if not token:
        raise UnauthorizedError("No token provided")

    claims = decode_token(token)
    g.current_email = claims["email"]
    return None


def current_email() -> str:
    email = g.get("current_email")
    if not email:
        raise UnauthorizedError("Unauthorized: User not authenticated")
    return email
