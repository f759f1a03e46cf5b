"""
Event repository.

Event rows keep their attendees in registered_volunteers (TEXT[]) with set
semantics. Every mutation is one UPDATE ... RETURNING so callers always see
the row as it stands after their own write.

A completed event is terminal: roster writes on it, or on an event whose
completion is in progress, match no row and return None.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from psycopg2 import sql

from volunteer_backend.database.db_connection import get_db, events_table

EVENT_COLUMNS = sql.SQL(
    "event_id, title, description, event_date, start_time, end_time, country, city, address, "
    "registered_volunteers, completed, completed_date, created_by"
)


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def to_event(row: Any) -> Dict[str, Any]:
    """Convert an events row into the API projection with attendee ids as strings."""
    return {
        "id": row["event_id"],
        "title": row["title"],
        "date": _iso(row["event_date"]),
        "location": {
            "country": row["country"],
            "city": row["city"],
            "address": row["address"],
        },
        "startTime": row["start_time"],
        "endTime": row["end_time"],
        "registeredVolunteers": [str(user_id) for user_id in row["registered_volunteers"] or []],
        "description": row["description"],
        "completed": bool(row["completed"]),
        "completedDate": _iso(row["completed_date"]),
        "createdBy": row["created_by"],
    }


class EventRepository:
    """Data access for event documents."""

    def __init__(self, db=get_db):
        self._db = db

    def get_by_id(self, event_id: str) -> Optional[Dict[str, Any]]:
        query = sql.SQL("SELECT {columns} FROM {table} WHERE event_id = %s;").format(
            columns=EVENT_COLUMNS, table=events_table()
        )
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (event_id,))
                row = cur.fetchone()
        return to_event(row) if row else None

    def list_all(self) -> List[Dict[str, Any]]:
        query = sql.SQL("SELECT {columns} FROM {table} ORDER BY event_date, start_time;").format(
            columns=EVENT_COLUMNS, table=events_table()
        )
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query)
                rows = cur.fetchall()
        return [to_event(row) for row in rows]

    def list_by_ids(self, event_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ids = list(event_ids)
        if not ids:
            return []

        query = sql.SQL(
            "SELECT {columns} FROM {table} WHERE event_id = ANY(%s) ORDER BY event_date, start_time;"
        ).format(columns=EVENT_COLUMNS, table=events_table())
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (ids,))
                rows = cur.fetchall()
        return [to_event(row) for row in rows]

    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a new event with no volunteers and completed = false.

        Args:
            fields (dict): title, description, date (datetime.date), startTime,
                endTime, location {country, city, address} and optional createdBy.
        """
        location = fields["location"]
        query = sql.SQL(
            """
            INSERT INTO {table} (
                event_id, title, description, event_date, start_time, end_time,
                country, city, address, created_by
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING {columns};
            """
        ).format(table=events_table(), columns=EVENT_COLUMNS)

        params = (
            str(uuid.uuid4()),
            fields["title"],
            fields["description"],
            fields["date"],
            fields["startTime"],
            fields["endTime"],
            location["country"],
            location["city"],
            location["address"],
            fields.get("createdBy"),
        )
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        return to_event(row)

    def add_volunteer(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Set-add user_id to the roster.

        Returns None if the event does not exist, is completed, or has a
        completion in progress. The roster of such an event never changes.
        """
        query = sql.SQL(
            """
            UPDATE {table}
            SET registered_volunteers = CASE
                WHEN %(user_id)s = ANY(registered_volunteers) THEN registered_volunteers
                ELSE array_append(registered_volunteers, %(user_id)s)
            END
            WHERE event_id = %(event_id)s
              AND NOT completed
              AND completion_started_at IS NULL
            RETURNING {columns};
            """
        ).format(table=events_table(), columns=EVENT_COLUMNS)
        return self._update_one(query, {"event_id": event_id, "user_id": user_id})

    def remove_volunteer(self, event_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Set-remove user_id from the roster. Same None cases as add_volunteer."""
        query = sql.SQL(
            """
            UPDATE {table}
            SET registered_volunteers = array_remove(registered_volunteers, %(user_id)s)
            WHERE event_id = %(event_id)s
              AND NOT completed
              AND completion_started_at IS NULL
            RETURNING {columns};
            """
        ).format(table=events_table(), columns=EVENT_COLUMNS)
        return self._update_one(query, {"event_id": event_id, "user_id": user_id})

    def claim_completion(self, event_id: str) -> Optional[Dict[str, Any]]:
        """
        Start a completion: stamp completion_started_at on an active event.

        Only one caller can win the claim. Once claimed, the roster is frozen,
        so the returned event carries the final list of volunteers to credit.

        Returns:
            dict: The claimed event, or None if the event does not exist, is
                completed, or is already claimed.
        """
        query = sql.SQL(
            """
            UPDATE {table}
            SET completion_started_at = CURRENT_TIMESTAMP
            WHERE event_id = %(event_id)s
              AND NOT completed
              AND completion_started_at IS NULL
            RETURNING {columns};
            """
        ).format(table=events_table(), columns=EVENT_COLUMNS)
        return self._update_one(query, {"event_id": event_id})

    def release_completion(self, event_id: str) -> bool:
        """Drop the claim of a completion that did not finish."""
        query = sql.SQL(
            """
            UPDATE {table}
            SET completion_started_at = NULL
            WHERE event_id = %(event_id)s AND NOT completed;
            """
        ).format(table=events_table())
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, {"event_id": event_id})
                return cur.rowcount > 0

    def mark_completed(self, event_id: str) -> Optional[Dict[str, Any]]:
        """
        Set completed = true and completed_date = now.

        Not guarded against an already completed event; the completion
        coordinator only calls it after winning claim_completion.
        """
        query = sql.SQL(
            """
            UPDATE {table}
            SET completed = TRUE, completed_date = CURRENT_TIMESTAMP
            WHERE event_id = %(event_id)s
            RETURNING {columns};
            """
        ).format(table=events_table(), columns=EVENT_COLUMNS)
        return self._update_one(query, {"event_id": event_id})

    def _update_one(self, query: sql.Composed, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
        return to_event(row) if row else None
