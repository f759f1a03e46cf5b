"""
Authentication route handlers.

Provides routes for:
- User registration
- User login

Both are public. Token logic lives in `auth_service.utils`, password
handling in `auth_service.credentials`.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response

from volunteer_backend.auth_service.utils import create_token
from volunteer_backend.errors import EmailTakenError, InternalError, UnauthorizedError
from volunteer_backend.services import get_services, json_body, require_fields, success

auth_bp = Blueprint("auth", __name__)

logger = logging.getLogger(__name__)


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new user account.

    Expects a JSON body with:
    - email (str): Unique email address, stored as given.
    - password (str)
    - firstName (str)
    - lastName (str)

    Returns:
        200: {"type": "success", "data": {"token": ...}}
        400: Missing field, or email already taken.
        500: Server-side error (hashing or database).
    """
    data: Dict[str, Any] = json_body()
    require_fields(data, ["email", "password", "firstName", "lastName"])

    created = get_services().credentials.register(
        data["email"], data["password"], data["firstName"], data["lastName"]
    )
    if not created:
        raise EmailTakenError()

    # Token for immediate login
    token = create_token(data["email"])
    return success({"token": token}, message="User registered successfully")


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a token with the user's profile.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: {"type": "success", "token": ..., "user": {...}}
        400: Missing credentials.
        401: Wrong email or password (indistinguishable).
        500: Database error.
    """
    data: Dict[str, Any] = json_body()
    require_fields(data, ["email", "password"])

    services = get_services()
    if not services.credentials.verify(data["email"], data["password"]):
        raise UnauthorizedError("Incorrect email or password")

    user = services.users.get_by_email(data["email"])
    if user is None:
        logger.error("[Auth] Credentials verified but user lookup returned nothing")
        raise InternalError("User authenticated but data retrieval failed")

    token = create_token(data["email"])
    return success(message="Login successful", token=token, user=user)
