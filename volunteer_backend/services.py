"""
Per-application service container.

create_app() builds one Services object and stores it in app.extensions;
route handlers reach it through get_services().
"""

from typing import Any, Dict, Iterable, Optional

from flask import current_app, jsonify, request

from volunteer_backend.auth_service.credentials import CredentialStore
from volunteer_backend.auth_service.utils import current_email
from volunteer_backend.database.events_repository import EventRepository
from volunteer_backend.database.users_repository import UserRepository
from volunteer_backend.errors import MissingFieldError, UnauthorizedError, ValidationError
from volunteer_backend.events_service.completion import CompletionCoordinator
from volunteer_backend.events_service.registration import RegistrationCoordinator

EXTENSION_KEY = "volunteer_backend"


class Services:
    def __init__(
        self,
        users: Optional[UserRepository] = None,
        events: Optional[EventRepository] = None,
        credentials: Optional[CredentialStore] = None,
    ):
        self.users = users or UserRepository()
        self.events = events or EventRepository()
        self.credentials = credentials or CredentialStore(self.users)
        self.registration = RegistrationCoordinator(self.users, self.events)
        self.completion = CompletionCoordinator(self.users, self.events)


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


# --- REQUEST / RESPONSE HELPERS ---

def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    """Raise MissingFieldError for the first field that is absent or empty."""
    for field in fields:
        if not data.get(field):
            raise MissingFieldError(field)


def success(data: Any = None, message: Optional[str] = None, status: int = 200, **extra: Any):
    """Build the {"type": "success", ...} envelope."""
    body: Dict[str, Any] = {"type": "success"}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def error_body(message: str) -> Dict[str, str]:
    return {"type": "error", "message": message}


def current_user() -> Dict[str, Any]:
    """Load the user bound to the request's verified token email."""
    user = get_services().users.get_by_email(current_email())
    if user is None:
        raise UnauthorizedError("Unauthorized: User not found")
    return user
