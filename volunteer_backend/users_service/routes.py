"""
User routes: profile edits and the attending / past event listings.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Tuple

from flask import Blueprint, Response

from volunteer_backend.errors import NotFoundError
from volunteer_backend.services import get_services, json_body, require_fields, success

users_bp = Blueprint("users", __name__)

logger = logging.getLogger(__name__)


@users_bp.route("/edit", methods=["POST"])
def edit_user() -> Tuple[Response, int]:
    """
    Update a user's email, first name and last name.

    Expects JSON: {id, email, firstName, lastName}

    Returns:
        200: The updated user.
        400: Missing field, or email taken by another user.
        404: User not found.
    """
    data: Dict[str, Any] = json_body()
    require_fields(data, ["id", "email", "firstName", "lastName"])

    updated_user = get_services().users.update_profile(
        str(data["id"]),
        {"email": data["email"], "firstName": data["firstName"], "lastName": data["lastName"]},
    )
    if updated_user is None:
        raise NotFoundError("User not found")

    logger.info(f"[Users] Profile updated for {updated_user['id']}")
    return success(updated_user, message="User information updated successfully")


@users_bp.route("/<user_id>/events/attending", methods=["GET"])
def events_attending(user_id: str) -> Tuple[Response, int]:
    """
    Events the user is registered for and that are not completed yet.

    Returns:
        200: List of events (empty if the user is unknown or attends nothing).
    """
    services = get_services()
    user = services.users.get_by_id(user_id)
    if user is None or not user["eventsAttending"]:
        return success([])

    return success(services.events.list_by_ids(user["eventsAttending"]))


@users_bp.route("/<user_id>/events/past", methods=["GET"])
def past_events(user_id: str) -> Tuple[Response, int]:
    """
    Events the user has attended whose date is before today (UTC).

    Returns:
        200: List of events.
        404: User not found.
    """
    services = get_services()
    user = services.users.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")

    today = datetime.now(timezone.utc).date()
    events = [
        event
        for event in services.events.list_by_ids(user["eventsAttended"])
        if date.fromisoformat(event["date"][:10]) < today
    ]
    return success(events)
