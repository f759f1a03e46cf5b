"""
Credential store: password hashing and verification keyed by email.

Hashes are Argon2 (argon2-cffi). The time cost is read from
PASSWORD_HASH_TIME_COST and otherwise left at the library default.
"""

import os
import logging
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from dotenv import load_dotenv

from volunteer_backend.database.users_repository import UserRepository

load_dotenv()

logger = logging.getLogger(__name__)


def build_password_hasher() -> PasswordHasher:
    time_cost = os.getenv("PASSWORD_HASH_TIME_COST")
    if time_cost:
        return PasswordHasher(time_cost=int(time_cost))
    return PasswordHasher()


class CredentialStore:
    """Registers users and checks their passwords."""

    def __init__(self, users: UserRepository, hasher: Optional[PasswordHasher] = None):
        self.users = users
        self.hasher = hasher or build_password_hasher()
        # Verified against when the email is unknown so both failure paths cost the same
        self._dummy_hash = self.hasher.hash("not-a-real-password")

    def register(self, email: str, password: str, first_name: str, last_name: str) -> bool:
        """
        Create a user with role 'user', empty membership sets and zero counters.

        Returns:
            bool: True if created, False if the email is already taken.
        """
        if self.users.get_by_email(email):
            return False

        password_hash = self.hasher.hash(password)
        user_id = self.users.insert(email, password_hash, first_name, last_name)
        if user_id is None:
            # Lost a race with another registration for the same email
            return False

        logger.info(f"[Auth] Registered user {user_id}")
        return True

    def verify(self, email: str, password: str) -> bool:
        """True iff the email exists and the password matches its hash."""
        stored = self.users.get_password_hash(email)

        try:
            self.hasher.verify(stored or self._dummy_hash, password)
        except (VerificationError, InvalidHashError):
            return False

        return stored is not None
