"""
User repository.

Reads and single-row atomic updates on the users table. Membership columns
(events_attending, events_attended) are TEXT[] used with set semantics:
adds are skipped when the id is already present, removes use array_remove.
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional

import psycopg2.errors
from psycopg2 import sql

from volunteer_backend.database.db_connection import get_db, users_table
from volunteer_backend.errors import EmailTakenError, NoFieldsError

# Never includes password_hash
USER_COLUMNS = sql.SQL(
    "user_id, role, email, first_name, last_name, total_events, total_hours, "
    "events_attended, events_attending"
)

PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "email": "email",
}


def to_user(row: Any) -> Dict[str, Any]:
    """Convert a users row into the password-free API projection."""
    return {
        "id": row["user_id"],
        "type": row["role"],
        "email": row["email"],
        "firstName": row["first_name"],
        "lastName": row["last_name"],
        "totalEvents": int(row["total_events"]),
        "totalHours": round(float(row["total_hours"]), 2),
        "eventsAttended": list(row["events_attended"] or []),
        "eventsAttending": list(row["events_attending"] or []),
    }


class UserRepository:
    """Data access for user documents."""

    def __init__(self, db=get_db):
        self._db = db

    # --- CREDENTIAL PRIMITIVES ---

    def insert(self, email: str, password_hash: str, first_name: str, last_name: str) -> Optional[str]:
        """
        Insert a new user with role 'user', empty membership sets and zero counters.

        Returns:
            str: The new user id, or None if the email is already taken.
        """
        user_id = str(uuid.uuid4())
        query = sql.SQL(
            """
            INSERT INTO {table} (user_id, email, password_hash, first_name, last_name, role)
            VALUES (%s, %s, %s, %s, %s, 'user')
            RETURNING user_id;
            """
        ).format(table=users_table())

        try:
            with self._db() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (user_id, email, password_hash, first_name, last_name))
                    row = cur.fetchone()
        except psycopg2.errors.UniqueViolation:
            return None

        return row["user_id"]

    def get_password_hash(self, email: str) -> Optional[str]:
        query = sql.SQL("SELECT password_hash FROM {table} WHERE email = %s;").format(
            table=users_table()
        )
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (email,))
                row = cur.fetchone()
        return row["password_hash"] if row else None

    # --- READS ---

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one("email", email)

    def get_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one("user_id", user_id)

    def _fetch_one(self, column: str, value: str) -> Optional[Dict[str, Any]]:
        query = sql.SQL("SELECT {columns} FROM {table} WHERE {column} = %s;").format(
            columns=USER_COLUMNS,
            table=users_table(),
            column=sql.Identifier(column),
        )
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (value,))
                row = cur.fetchone()
        return to_user(row) if row else None

    def list_by_ids(self, user_ids: Iterable[str]) -> List[Dict[str, str]]:
        """Return {id, firstName, lastName} for each existing user in user_ids."""
        ids = list(user_ids)
        if not ids:
            return []

        query = sql.SQL(
            "SELECT user_id, first_name, last_name FROM {table} WHERE user_id = ANY(%s);"
        ).format(table=users_table())
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (ids,))
                rows = cur.fetchall()

        return [
            {"id": row["user_id"], "firstName": row["first_name"], "lastName": row["last_name"]}
            for row in rows
        ]

    # --- PROFILE ---

    def update_profile(self, user_id: str, updates: Dict[str, Optional[str]]) -> Optional[Dict[str, Any]]:
        """
        Update any of firstName, lastName and email.

        Returns:
            dict: The updated user, or None if the user does not exist.

        Raises:
            NoFieldsError: None of the three fields was provided.
            EmailTakenError: The new email belongs to another user.
        """
        fields = {
            PROFILE_FIELDS[key]: value
            for key, value in updates.items()
            if key in PROFILE_FIELDS and value
        }
        if not fields:
            raise NoFieldsError()

        set_clause = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(column)) for column in fields
        )
        query = sql.SQL("UPDATE {table} SET {set_clause} WHERE user_id = %s RETURNING {columns};").format(
            table=users_table(),
            set_clause=set_clause,
            columns=USER_COLUMNS,
        )

        try:
            with self._db() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, list(fields.values()) + [user_id])
                    row = cur.fetchone()
        except psycopg2.errors.UniqueViolation:
            raise EmailTakenError()

        return to_user(row) if row else None

    def set_role(self, email: str, role: str) -> bool:
        query = sql.SQL("UPDATE {table} SET role = %s WHERE email = %s;").format(table=users_table())
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, (role, email))
                return cur.rowcount > 0

    # --- MEMBERSHIP ---

    def add_attending(self, user_id: str, event_id: str) -> bool:
        """
        Set-add event_id to the user's attending set. False if the user does not exist.

        An event the user has already been credited for stays out of the
        attending set.
        """
        query = sql.SQL(
            """
            UPDATE {table}
            SET events_attending = CASE
                WHEN %(event_id)s = ANY(events_attending)
                  OR %(event_id)s = ANY(events_attended) THEN events_attending
                ELSE array_append(events_attending, %(event_id)s)
            END
            WHERE user_id = %(user_id)s;
            """
        ).format(table=users_table())
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, {"user_id": user_id, "event_id": event_id})
                return cur.rowcount > 0

    def remove_attending(self, user_id: str, event_id: str) -> bool:
        """Set-remove event_id from the user's attending set. False if the user does not exist."""
        query = sql.SQL(
            """
            UPDATE {table}
            SET events_attending = array_remove(events_attending, %(event_id)s)
            WHERE user_id = %(user_id)s;
            """
        ).format(table=users_table())
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, {"user_id": user_id, "event_id": event_id})
                return cur.rowcount > 0

    def transfer_attending_to_attended(self, user_id: str, event_id: str, hours: float) -> Optional[Dict[str, Any]]:
        """
        Credit the user for a completed event in one atomic row update.

        Removes event_id from events_attending, set-adds it to events_attended,
        increments total_events by 1 and total_hours by hours.

        Returns:
            dict: The updated user, or None if the user does not exist.
        """
        query = sql.SQL(
            """
            UPDATE {table}
            SET events_attending = array_remove(events_attending, %(event_id)s),
                events_attended = CASE
                    WHEN %(event_id)s = ANY(events_attended) THEN events_attended
                    ELSE array_append(events_attended, %(event_id)s)
                END,
                total_events = total_events + 1,
                total_hours = total_hours + %(hours)s
            WHERE user_id = %(user_id)s
            RETURNING {columns};
            """
        ).format(table=users_table(), columns=USER_COLUMNS)
        with self._db() as conn:
            with conn.cursor() as cur:
                cur.execute(query, {"user_id": user_id, "event_id": event_id, "hours": hours})
                row = cur.fetchone()
        return to_user(row) if row else None
