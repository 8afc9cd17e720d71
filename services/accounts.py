"""
Account flows around the session core: email verification, password
reset/change, profile and role updates.

Password change and reset clear users.refresh_token_hash, which ends the
user's session.
"""
from __future__ import annotations

import logging
import smtplib
from datetime import timedelta

from models.base_model import as_utc, utcnow
from models.user import User
from services.errors import (
    EmailAlreadyVerified,
    InvalidCredentials,
    InvalidResetToken,
    InvalidVerificationToken,
    UserNotFound,
)
from services.notifier import mask_email
from utils.security import generate_hex, generate_token

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "wallet_address")


class AccountService:
    def __init__(
        self,
        store,
        hasher,
        notifier,
        *,
        verification_ttl: timedelta = timedelta(hours=24),
        reset_ttl: timedelta = timedelta(hours=1),
    ):
        self.store = store
        self.hasher = hasher
        self.notifier = notifier
        self.verification_ttl = verification_ttl
        self.reset_ttl = reset_ttl

    def _notify(self, method: str, *args) -> None:
        # mail outages must not undo a committed account change
        try:
            getattr(self.notifier, method)(*args)
        except (smtplib.SMTPException, OSError):
            logger.warning("%s failed for %s", method, mask_email(args[0]), exc_info=True)

    def _require_user(self, user_id: str) -> User:
        user = self.store.load_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    # -- email verification ----------------------------------------------

    def start_email_verification(self, user_id: str) -> str:
        return self._send_verification(self._require_user(user_id))

    def _send_verification(self, user: User) -> str:
        token = generate_token()
        user.email_verification_token = token
        user.email_verification_expires_at = utcnow() + self.verification_ttl
        self.store.save(user)
        self._notify("send_verification_email", user.email, token, user.first_name)
        return token

    def verify_email(self, token: str) -> User:
        user = self.store.load_by_verification_token(token) if token else None
        if user is None:
            raise InvalidVerificationToken()
        expires_at = as_utc(user.email_verification_expires_at)
        if expires_at is not None and expires_at < utcnow():
            raise InvalidVerificationToken("Verification token has expired")

        user.is_email_verified = True
        user.email_verification_token = None
        user.email_verification_expires_at = None
        self.store.save(user)
        logger.info("email verified for %s", mask_email(user.email))
        return user

    def resend_verification(self, email: str) -> str:
        user = self.store.load_by_email(email)
        if user is None:
            raise UserNotFound()
        if user.is_email_verified:
            raise EmailAlreadyVerified()
        return self._send_verification(user)

    # -- passwords -----------------------------------------------------------

    def forgot_password(self, email: str) -> None:
        """Silent for unknown emails, so callers cannot probe for accounts."""
        user = self.store.load_by_email(email)
        if user is None:
            return

        selector = generate_hex(16)
        validator = generate_hex(32)
        user.reset_token_selector = selector
        user.reset_token_hash = self.hasher.hash(validator)
        user.reset_token_expires_at = utcnow() + self.reset_ttl
        self.store.save(user)
        self._notify("send_password_reset_email", user.email, f"{selector}.{validator}", user.first_name)

    def reset_password(self, token: str, new_password: str) -> None:
        parts = (token or "").split(".")
        if len(parts) != 2 or not all(parts):
            raise InvalidResetToken("Invalid token")
        selector, validator = parts

        user = self.store.load_by_reset_selector(selector)
        if user is None or not user.reset_token_hash or not user.reset_token_expires_at:
            raise InvalidResetToken()
        if as_utc(user.reset_token_expires_at) < utcnow():
            raise InvalidResetToken()
        if not self.hasher.verify(validator, user.reset_token_hash):
            raise InvalidResetToken()

        user.password_hash = self.hasher.hash(new_password)
        user.reset_token_selector = None
        user.reset_token_hash = None
        user.reset_token_expires_at = None
        user.refresh_token_hash = None
        self.store.save(user)
        logger.info("password reset for %s; sessions revoked", mask_email(user.email))
        self._notify("send_password_changed_email", user.email, user.first_name)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = self._require_user(user_id)
        if not self.hasher.verify(current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        user.password_hash = self.hasher.hash(new_password)
        user.refresh_token_hash = None
        self.store.save(user)
        logger.info("password changed for %s; sessions revoked", mask_email(user.email))
        self._notify("send_password_changed_email", user.email, user.first_name)

    # -- profile -------------------------------------------------------------

    def update_profile(self, user_id: str, **fields) -> User:
        user = self._require_user(user_id)
        for name in PROFILE_FIELDS:
            if name in fields:
                setattr(user, name, fields[name])
        # unique wallet_address violations surface as AlreadyExists from the store
        return self.store.save(user)

    def set_role(self, user_id: str, role: str) -> User:
        user = self._require_user(user_id)
        user.role = role
        return self.store.save(user)
