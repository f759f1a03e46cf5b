"""
In-memory stand-ins for the PostgreSQL repositories.

Rows are stored in the same snake_case shape the database returns, and are
projected with the real to_user / to_event mappers, so callers see exactly
what the SQL repositories would give them. Membership columns keep set
semantics.
"""

import copy
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from volunteer_backend.database.events_repository import to_event
from volunteer_backend.database.users_repository import PROFILE_FIELDS, to_user
from volunteer_backend.errors import EmailTakenError, NoFieldsError


def _set_add(values, item):
    if item not in values:
        values.append(item)


class InMemoryUserRepository:
    def __init__(self):
        self.rows = {}

    def insert(self, email, password_hash, first_name, last_name):
        if any(row["email"] == email for row in self.rows.values()):
            return None
        user_id = str(uuid.uuid4())
        self.rows[user_id] = {
            "user_id": user_id,
            "email": email,
            "password_hash": password_hash,
            "first_name": first_name,
            "last_name": last_name,
            "role": "user",
            "events_attending": [],
            "events_attended": [],
            "total_events": 0,
            "total_hours": Decimal("0"),
        }
        return user_id

    def get_password_hash(self, email):
        row = self._by_email(email)
        return row["password_hash"] if row else None

    def get_by_email(self, email):
        row = self._by_email(email)
        return to_user(row) if row else None

    def get_by_id(self, user_id):
        row = self.rows.get(user_id)
        return to_user(row) if row else None

    def list_by_ids(self, user_ids):
        return [
            {"id": row["user_id"], "firstName": row["first_name"], "lastName": row["last_name"]}
            for user_id in user_ids
            if (row := self.rows.get(user_id))
        ]

    def update_profile(self, user_id, updates):
        fields = {PROFILE_FIELDS[k]: v for k, v in updates.items() if k in PROFILE_FIELDS and v}
        if not fields:
            raise NoFieldsError()
        row = self.rows.get(user_id)
        if row is None:
            return None
        new_email = fields.get("email")
        if new_email and any(r["email"] == new_email and r["user_id"] != user_id for r in self.rows.values()):
            raise EmailTakenError()
        row.update(fields)
        return to_user(row)

    def set_role(self, email, role):
        row = self._by_email(email)
        if row is None:
            return False
        row["role"] = role
        return True

    def add_attending(self, user_id, event_id):
        row = self.rows.get(user_id)
        if row is None:
            return False
        if event_id not in row["events_attended"]:
            _set_add(row["events_attending"], event_id)
        return True

    def remove_attending(self, user_id, event_id):
        row = self.rows.get(user_id)
        if row is None:
            return False
        row["events_attending"] = [e for e in row["events_attending"] if e != event_id]
        return True

    def transfer_attending_to_attended(self, user_id, event_id, hours):
        row = self.rows.get(user_id)
        if row is None:
            return None
        row["events_attending"] = [e for e in row["events_attending"] if e != event_id]
        _set_add(row["events_attended"], event_id)
        row["total_events"] += 1
        row["total_hours"] += Decimal(str(hours))
        return to_user(row)

    def _by_email(self, email):
        return next((row for row in self.rows.values() if row["email"] == email), None)

    def snapshot(self, user_id):
        return copy.deepcopy(self.rows[user_id])


class InMemoryEventRepository:
    def __init__(self):
        self.rows = {}

    def get_by_id(self, event_id):
        row = self.rows.get(event_id)
        return to_event(row) if row else None

    def list_all(self):
        return [to_event(row) for row in self._sorted(self.rows.values())]

    def list_by_ids(self, event_ids):
        wanted = set(event_ids)
        return [to_event(row) for row in self._sorted(r for r in self.rows.values() if r["event_id"] in wanted)]

    def create(self, fields):
        event_id = str(uuid.uuid4())
        location = fields["location"]
        self.rows[event_id] = {
            "event_id": event_id,
            "title": fields["title"],
            "description": fields["description"],
            "event_date": fields["date"],
            "start_time": fields["startTime"],
            "end_time": fields["endTime"],
            "country": location["country"],
            "city": location["city"],
            "address": location["address"],
            "registered_volunteers": [],
            "completed": False,
            "completed_date": None,
            "completion_started_at": None,
            "created_by": fields.get("createdBy"),
        }
        return to_event(self.rows[event_id])

    def add_volunteer(self, event_id, user_id):
        row = self._active(event_id)
        if row is None:
            return None
        _set_add(row["registered_volunteers"], user_id)
        return to_event(row)

    def remove_volunteer(self, event_id, user_id):
        row = self._active(event_id)
        if row is None:
            return None
        row["registered_volunteers"] = [u for u in row["registered_volunteers"] if u != user_id]
        return to_event(row)

    def claim_completion(self, event_id):
        row = self._active(event_id)
        if row is None:
            return None
        row["completion_started_at"] = datetime.now(timezone.utc)
        return to_event(row)

    def release_completion(self, event_id):
        row = self.rows.get(event_id)
        if row is None or row["completed"]:
            return False
        row["completion_started_at"] = None
        return True

    def mark_completed(self, event_id):
        row = self.rows.get(event_id)
        if row is None:
            return None
        row["completed"] = True
        row["completed_date"] = datetime.now(timezone.utc)
        return to_event(row)

    def _active(self, event_id):
        # Rows a roster write or a completion claim may still touch
        row = self.rows.get(event_id)
        if row is None or row["completed"] or row["completion_started_at"] is not None:
            return None
        return row

    @staticmethod
    def _sorted(rows):
        return sorted(rows, key=lambda r: (r["event_date"], r["start_time"]))


def make_event_fields(**overrides):
    fields = {
        "title": "Beach Cleanup",
        "description": "Pick up litter along the shore",
        "date": date(2030, 6, 1),
        "startTime": "09:00",
        "endTime": "11:30",
        "location": {"country": "US", "city": "Santa Cruz", "address": "1 Beach St"},
        "createdBy": None,
    }
    fields.update(overrides)
    return fields
