"""
Completion coordinator.

Marks an event completed and credits every volunteer on its roster: the
event moves from the user's attending set to the attended set and the
user's totalEvents / totalHours counters grow. A failure for one volunteer
is logged and counted but does not stop the batch.

Before any volunteer is credited the event is claimed with a single-row
conditional update. Only one caller wins the claim, so two admins completing
the same event cannot both run the fan-out, and registration writes stop
matching the event from that point on. The completed flag is still written
last; if that write fails the claim is released so the event can be
completed again.
"""

import logging
from typing import Any, Dict

import psycopg2

from volunteer_backend.auth_service.models import can_manage_events, role_of
from volunteer_backend.database.events_repository import EventRepository
from volunteer_backend.database.users_repository import UserRepository
from volunteer_backend.errors import (
    AlreadyCompletedError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def minutes_since_midnight(value: str) -> int:
    """Parse a 24-hour 'HH:MM' string."""
    hours, minutes = value.split(":")
    hours, minutes = int(hours), int(minutes)
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {value}")
    return hours * 60 + minutes


def event_duration_hours(start_time: str, end_time: str) -> float:
    """(end - start) in hours, rounded to 2 decimals. Not clamped at zero."""
    start = minutes_since_midnight(start_time)
    end = minutes_since_midnight(end_time)
    return round((end - start) / 60, 2)


class CompletionCoordinator:
    def __init__(self, users: UserRepository, events: EventRepository):
        self.users = users
        self.events = events

    def complete(self, event_id: str, acting_user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Complete an event and credit its volunteers.

        Returns:
            dict: {event, volunteersUpdated, totalVolunteers}

        Raises:
            ForbiddenError: acting_user cannot manage events.
            NotFoundError: The event does not exist.
            AlreadyCompletedError: The event was completed before, or another
                completion of it is running.
            InternalError: The completed flag could not be written.
        """
        if not can_manage_events(role_of(acting_user)):
            raise ForbiddenError("Forbidden: Only admins can mark events as completed")

        event = self.events.get_by_id(event_id)
        if event is None:
            raise NotFoundError("Event not found")
        if event["completed"]:
            raise AlreadyCompletedError()

        try:
            duration = event_duration_hours(event["startTime"], event["endTime"])
        except ValueError:
            raise ValidationError("Event has an invalid start or end time")

        if duration <= 0:
            logger.warning(
                f"[Completion] Event {event_id} has non-positive duration {duration} "
                f"({event['startTime']}-{event['endTime']})"
            )

        claimed = self._claim(event_id)

        # The claim freezes the roster, so this is the final list to credit
        volunteers = list(claimed["registeredVolunteers"])
        updated = 0
        for volunteer_id in volunteers:
            try:
                if self.users.transfer_attending_to_attended(volunteer_id, event_id, duration):
                    updated += 1
                else:
                    logger.warning(f"[Completion] Volunteer {volunteer_id} of event {event_id} not found")
            except psycopg2.Error:
                logger.exception(f"[Completion] Error updating volunteer {volunteer_id} for event {event_id}")

        try:
            completed_event = self.events.mark_completed(event_id)
        except psycopg2.Error:
            logger.exception(f"[Completion] mark_completed failed for event {event_id}")
            completed_event = None
        if completed_event is None:
            self._release(event_id, updated)
            raise InternalError("Failed to mark event as completed")

        logger.info(
            f"[Completion] Event {event_id} completed by {acting_user.get('id')}: "
            f"{updated}/{len(volunteers)} volunteers credited with {duration}h"
        )
        return {
            "event": completed_event,
            "volunteersUpdated": updated,
            "totalVolunteers": len(volunteers),
        }

    def _claim(self, event_id: str) -> Dict[str, Any]:
        try:
            claimed = self.events.claim_completion(event_id)
        except psycopg2.Error:
            logger.exception(f"[Completion] claim_completion failed for event {event_id}")
            raise InternalError("Failed to mark event as completed")
        if claimed is not None:
            return claimed

        # Another completion got there first, or the event went away
        if self.events.get_by_id(event_id) is None:
            raise NotFoundError("Event not found")
        logger.warning(f"[Completion] Event {event_id} is already completed or being completed")
        raise AlreadyCompletedError()

    def _release(self, event_id: str, credited: int) -> None:
        try:
            self.events.release_completion(event_id)
        except psycopg2.Error:
            logger.exception(f"[Completion] release_completion failed for event {event_id}")
            return
        logger.warning(
            f"[Completion] Event {event_id} left active after {credited} volunteers were credited; "
            f"a retry credits them again"
        )
