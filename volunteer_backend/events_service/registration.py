"""
Registration coordinator.

Keeps event.registeredVolunteers and user.eventsAttending in step without a
cross-table transaction. The event roster is written first (phase A) because
it is what the attendee list and the completion fan-out read. The user's
attending set is written second (phase B). When phase B fails, phase A is
undone on a best-effort basis; if that undo fails too, an INCONSISTENCY
record is logged for later reconciliation.

Both phases use set-add / set-remove, so a retried or concurrent request
ends with a single membership on each side. The roster writes only match an
active event, so a completion that lands after the pre-check read surfaces
as cannot-modify-completed and leaves the finished roster untouched.
"""

import logging
from typing import Any, Dict

import psycopg2

from volunteer_backend.database.events_repository import EventRepository
from volunteer_backend.database.users_repository import UserRepository
from volunteer_backend.errors import (
    AlreadyRegisteredError,
    CannotModifyCompletedError,
    InternalError,
    NotFoundError,
    NotRegisteredError,
)

logger = logging.getLogger(__name__)


class RegistrationCoordinator:
    def __init__(self, users: UserRepository, events: EventRepository):
        self.users = users
        self.events = events

    def register(self, user_id: str, event_id: str) -> Dict[str, Any]:
        """
        Add user_id to the event roster and event_id to the user's attending set.

        Returns:
            dict: The event after phase A.

        Raises:
            NotFoundError: User or event does not exist.
            CannotModifyCompletedError: The event is completed.
            AlreadyRegisteredError: The user is already on the roster.
            InternalError: A write failed; any phase A write was compensated.
        """
        event = self._load_for_change(user_id, event_id)
        if user_id in event["registeredVolunteers"]:
            raise AlreadyRegisteredError()

        # Phase A: event roster
        try:
            updated_event = self.events.add_volunteer(event_id, user_id)
        except psycopg2.Error:
            logger.exception(f"[Registration] add_volunteer failed event={event_id} user={user_id}")
            raise InternalError("Failed to register for event")
        if updated_event is None:
            self._raise_for_guarded_write(event_id, "Failed to register for event")

        # Phase B: user's attending set
        if not self._apply_user_side(self.users.add_attending, "add_attending", user_id, event_id):
            self._compensate(self.events.remove_volunteer, "register", user_id, event_id)
            raise InternalError("Failed to update user's events")

        logger.info(f"[Registration] User {user_id} registered for event {event_id}")
        return updated_event

    def unregister(self, user_id: str, event_id: str) -> Dict[str, Any]:
        """
        Remove user_id from the event roster and event_id from the user's attending set.

        Returns:
            dict: The event after phase A.

        Raises:
            NotFoundError: User or event does not exist.
            CannotModifyCompletedError: The event is completed.
            NotRegisteredError: The user is not on the roster.
            InternalError: A write failed; any phase A write was compensated.
        """
        event = self._load_for_change(user_id, event_id)
        if user_id not in event["registeredVolunteers"]:
            raise NotRegisteredError()

        # Phase A: event roster
        try:
            updated_event = self.events.remove_volunteer(event_id, user_id)
        except psycopg2.Error:
            logger.exception(f"[Registration] remove_volunteer failed event={event_id} user={user_id}")
            raise InternalError("Failed to cancel event registration")
        if updated_event is None:
            self._raise_for_guarded_write(event_id, "Failed to cancel event registration")

        # Phase B: user's attending set
        if not self._apply_user_side(self.users.remove_attending, "remove_attending", user_id, event_id):
            self._compensate(self.events.add_volunteer, "unregister", user_id, event_id)
            raise InternalError("Failed to update user's events")

        logger.info(f"[Registration] User {user_id} unregistered from event {event_id}")
        return updated_event

    def _load_for_change(self, user_id: str, event_id: str) -> Dict[str, Any]:
        if self.users.get_by_id(user_id) is None:
            raise NotFoundError("User not found")

        event = self.events.get_by_id(event_id)
        if event is None:
            raise NotFoundError("Event not found")

        if event["completed"]:
            raise CannotModifyCompletedError()

        return event

    def _raise_for_guarded_write(self, event_id: str, failure: str) -> None:
        """
        A roster write matched no row. The event either went away or was
        completed (or claimed for completion) after _load_for_change read it.
        """
        try:
            event = self.events.get_by_id(event_id)
        except psycopg2.Error:
            logger.exception(f"[Registration] Re-read of event {event_id} failed")
            raise InternalError(failure)
        if event is None:
            logger.error(f"[Registration] Event {event_id} vanished before the roster write")
            raise InternalError(failure)

        logger.info(f"[Registration] Event {event_id} was completed before the roster write")
        raise CannotModifyCompletedError()

    def _apply_user_side(self, write, operation: str, user_id: str, event_id: str) -> bool:
        try:
            ok = write(user_id, event_id)
        except psycopg2.Error:
            logger.exception(f"[Registration] {operation} failed user={user_id} event={event_id}")
            return False

        if not ok:
            logger.error(f"[Registration] {operation} matched no user user={user_id} event={event_id}")
        return bool(ok)

    def _compensate(self, undo, operation: str, user_id: str, event_id: str) -> None:
        try:
            if undo(event_id, user_id) is not None:
                logger.warning(f"[Registration] Compensated {operation} event={event_id} user={user_id}")
                return
        except psycopg2.Error:
            logger.exception(f"[Registration] Compensation write failed event={event_id} user={user_id}")

        logger.error(
            "INCONSISTENCY operation=%s event=%s user=%s roster and attending set disagree",
            operation,
            event_id,
            user_id,
        )
