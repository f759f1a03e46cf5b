"""
Events service routes: list, create and read events, volunteer
registration and event completion.

Every route here sits behind the API token gate installed by the gateway.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response

from volunteer_backend.auth_service.models import can_manage_events, role_of
from volunteer_backend.errors import (
    ForbiddenError,
    MissingFieldError,
    NotFoundError,
    ValidationError,
)
from volunteer_backend.events_service.completion import minutes_since_midnight
from volunteer_backend.services import current_user, get_services, json_body, require_fields, success

events_bp = Blueprint("events", __name__)

logger = logging.getLogger(__name__)

# --- CONSTANTS FOR VALIDATION ---
REQUIRED_EVENT_FIELDS = ["title", "date", "location", "startTime", "endTime", "description"]
REQUIRED_LOCATION_FIELDS = ["country", "city", "address"]


def parse_event_date(val: Optional[str]) -> Optional[date]:
    """
    Parse 'YYYY-MM-DD' or an ISO-8601 datetime string to a calendar day.

    Returns:
        date: The parsed day, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        if len(val) == 10:
            return date.fromisoformat(val)
        if val.endswith("Z"):
            val = val[:-1] + "+00:00"
        return datetime.fromisoformat(val).date()
    except ValueError:
        return None


def validate_time_range(start_time: Any, end_time: Any) -> None:
    """Require two 'HH:MM' strings with end after start on the same day."""
    try:
        start = minutes_since_midnight(start_time)
        end = minutes_since_midnight(end_time)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError("startTime and endTime must be HH:MM (24-hour)")

    if end <= start:
        raise ValidationError("endTime must be after startTime")


@events_bp.route("", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return all events.

    Returns:
        200: List of events; registeredVolunteers are user ids.
    """
    events = get_services().events.list_all()
    return success(events)


@events_bp.route("", methods=["POST"])
def create_event() -> Tuple[Response, int]:
    """
    Create an event. Admin only.

    Expects JSON:
        {title, date, location: {country, city, address},
         startTime, endTime, description}

    Returns:
        201: The new event.
        400: Missing or invalid field.
        403: Caller is not an admin.
    """
    user = current_user()
    if not can_manage_events(role_of(user)):
        raise ForbiddenError("Forbidden: Only admins can create events")

    data: Dict[str, Any] = json_body()
    require_fields(data, REQUIRED_EVENT_FIELDS)

    location = data["location"]
    if not isinstance(location, dict):
        raise ValidationError("location must be an object")
    for field in REQUIRED_LOCATION_FIELDS:
        if not location.get(field):
            raise MissingFieldError(f"location.{field}")

    event_date = parse_event_date(data["date"])
    if event_date is None:
        raise ValidationError("Invalid date format. Use ISO-8601.")

    validate_time_range(data["startTime"], data["endTime"])

    new_event = get_services().events.create({
        "title": data["title"],
        "description": data["description"],
        "date": event_date,
        "startTime": data["startTime"],
        "endTime": data["endTime"],
        "location": {field: location[field] for field in REQUIRED_LOCATION_FIELDS},
        "createdBy": user["id"],
    })

    logger.info(f"[Events] Event {new_event['id']} created by {user['id']}")
    return success(new_event, message="Event created successfully", status=201)


@events_bp.route("/<event_id>", methods=["GET"])
def get_event(event_id: str) -> Tuple[Response, int]:
    """
    Get a single event with its volunteers projected to {id, firstName, lastName}.

    Returns:
        200: Event object.
        404: Event not found.
    """
    services = get_services()
    event = services.events.get_by_id(event_id)
    if event is None:
        raise NotFoundError("Event not found")

    attendees = services.users.list_by_ids(event["registeredVolunteers"])

    return success({
        **event,
        "registeredVolunteers": attendees,
        "completed": event.get("completed") or False,
        "completedDate": event.get("completedDate"),
    })


@events_bp.route("/<event_id>/register", methods=["POST"])
def register_for_event(event_id: str) -> Tuple[Response, int]:
    """
    Register the user named in the body for an event.

    Expects JSON: {"userId": str}

    Returns:
        200: The updated event.
        400: Missing userId, already registered, or event completed.
        404: User or event not found.
        500: Registration write failed (compensated).
    """
    data: Dict[str, Any] = json_body()
    require_fields(data, ["userId"])

    updated_event = get_services().registration.register(str(data["userId"]), event_id)
    return success(updated_event, message="Successfully registered for event")


@events_bp.route("/<event_id>/unregister", methods=["POST"])
def unregister_from_event(event_id: str) -> Tuple[Response, int]:
    """
    Cancel the registration of the user named in the body.

    Expects JSON: {"userId": str}

    Returns:
        200: The updated event.
        400: Missing userId, not registered, or event completed.
        404: User or event not found.
        500: Cancellation write failed (compensated).
    """
    data: Dict[str, Any] = json_body()
    require_fields(data, ["userId"])

    updated_event = get_services().registration.unregister(str(data["userId"]), event_id)
    return success(updated_event, message="Successfully canceled event registration")


@events_bp.route("/<event_id>/complete", methods=["POST"])
def complete_event(event_id: str) -> Tuple[Response, int]:
    """
    Mark an event completed and credit its volunteers. Admin only.

    Returns:
        200: {event, volunteersUpdated, totalVolunteers}
        400: Event already completed.
        403: Caller is not an admin.
        404: Event not found.
        500: The completed flag could not be written.
    """
    result = get_services().completion.complete(event_id, current_user())
    return success(result, message="Event marked as completed")
