"""
UserStore: the credential store behind the session and account services.

Wraps the DBStorage scoped session. SQLAlchemy errors never leave this module
raw; they surface as PersistenceFailure (or AlreadyExists for unique
violations on insert/update).
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.user import User
from services.errors import AlreadyExists, PersistenceFailure


class UserStore:
    def __init__(self, storage):
        self._storage = storage

    def _query(self):
        return self._storage.get_session().query(User)

    def _load(self, *criteria) -> User | None:
        try:
            return self._query().filter(*criteria).first()
        except SQLAlchemyError as exc:
            raise PersistenceFailure() from exc

    def load_by_id(self, user_id) -> User | None:
        if not user_id:
            return None
        return self._load(User.id == str(user_id))

    def load_by_email(self, email: str) -> User | None:
        return self._load(User.email == email)

    def load_by_verification_token(self, token: str) -> User | None:
        return self._load(User.email_verification_token == token)

    def load_by_reset_selector(self, selector: str) -> User | None:
        return self._load(User.reset_token_selector == selector)

    def load_by_wallet(self, wallet_address: str) -> User | None:
        return self._load(User.wallet_address == wallet_address)

    def add(self, user: User) -> User:
        """Insert a new user; a unique violation means the email is taken."""
        try:
            self._storage.new(user)
            self._storage.save()
        except IntegrityError as exc:
            raise AlreadyExists() from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure() from exc
        return user

    def save(self, user: User) -> User:
        try:
            self._storage.new(user)
            self._storage.save()
        except IntegrityError as exc:
            raise AlreadyExists("Unique constraint violated") from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure() from exc
        return user

    def swap_refresh_token_hash(self, user_id: str, expected: str, new: str) -> bool:
        """
        Compare-and-swap on users.refresh_token_hash.

        Writes ``new`` only while the row still holds ``expected``; returns
        False when another writer got there first.
        """
        try:
            updated = (
                self._query()
                .filter(User.id == user_id, User.refresh_token_hash == expected)
                .update({User.refresh_token_hash: new}, synchronize_session="evaluate")
            )
            self._storage.save()
        except SQLAlchemyError as exc:
            self._storage.rollback()
            raise PersistenceFailure() from exc
        return updated == 1
