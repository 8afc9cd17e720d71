"""
Session token manager: issues, verifies and rotates access/refresh token pairs.

Each user holds at most one live refresh token, stored only as a hash in
users.refresh_token_hash. Every successful refresh consumes the presented
token. Presenting a token that no longer matches the stored hash is treated
as replay of a stolen token and ends the session (hash cleared), so the only
way back in is a fresh login.

    NO_SESSION --(login/register)--> ACTIVE(H1)
    ACTIVE(H1) --(refresh, token matches H1)--> ACTIVE(H2)
    ACTIVE(Hn) --(refresh, token does not match Hn)--> NO_SESSION
    ACTIVE(Hn) --(password change/reset)--> NO_SESSION
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict

from models.user import User, UserRole
from services.errors import (
    AlreadyExists,
    InvalidCredentials,
    InvalidOrExpiredToken,
    Unauthenticated,
)
from services.notifier import mask_email
from utils.security import TokenError

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    user: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": "bearer",
            "user": self.user,
        }


def build_payload(user: User) -> Dict[str, Any]:
    payload = {"sub": str(user.id), "email": user.email, "role": user.role}
    if user.wallet_address:
        payload["wallet_address"] = user.wallet_address
    return payload


class SessionTokenManager:
    def __init__(
        self,
        store,
        codec,
        hasher,
        *,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("access and refresh secrets are required")
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must be signed with different secrets")
        self.store = store
        self.codec = codec
        self.hasher = hasher
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _mint(self, user: User) -> tuple[TokenPair, str]:
        """Sign a new pair; returns it with the hash of its refresh token."""
        payload = build_payload(user)
        access = self.codec.sign(payload, self.access_secret, self.access_ttl, ACCESS)
        refresh = self.codec.sign(payload, self.refresh_secret, self.refresh_ttl, REFRESH)
        return TokenPair(access, refresh, user.to_dict()), self.hasher.hash(refresh)

    def issue(self, user: User) -> TokenPair:
        """Mint a pair for an already authenticated user and persist its refresh hash."""
        pair, refresh_hash = self._mint(user)
        user.refresh_token_hash = refresh_hash
        self.store.save(user)
        return pair

    def login(self, email: str, password: str) -> TokenPair:
        user = self.store.load_by_email(email)
        if user is None or not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentials()
        logger.info("user logged in: %s", mask_email(user.email))
        return self.issue(user)

    def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        wallet_address: str | None = None,
    ) -> TokenPair:
        if self.store.load_by_email(email) is not None:
            raise AlreadyExists()
        if wallet_address and self.store.load_by_wallet(wallet_address) is not None:
            raise AlreadyExists("Wallet address is already linked to another account")

        user = User(
            email=email,
            password_hash=self.hasher.hash(password),
            first_name=first_name,
            last_name=last_name,
            wallet_address=wallet_address,
            role=UserRole.USER.value,
            is_email_verified=False,
        )
        self.store.add(user)
        logger.info("user registered: %s", mask_email(user.email))
        return self.issue(user)

    def refresh(self, presented: str) -> TokenPair:
        """Rotate a refresh token. Every failure is InvalidOrExpiredToken."""
        try:
            payload = self.codec.verify(presented, self.refresh_secret, REFRESH)
        except TokenError as exc:
            raise InvalidOrExpiredToken() from exc

        user = self.store.load_by_id(payload.get("sub"))
        if user is None:
            raise InvalidOrExpiredToken()

        current_hash = user.refresh_token_hash
        if not current_hash:
            logger.warning("refresh attempted for user %s with no active session", user.id)
            raise InvalidOrExpiredToken()

        if not self.hasher.verify(presented, current_hash):
            logger.warning("refresh token reuse detected for user %s; session revoked", user.id)
            user.refresh_token_hash = None
            # a failed write here raises PersistenceFailure: the old session may still be live
            self.store.save(user)
            raise InvalidOrExpiredToken()

        pair, new_hash = self._mint(user)
        if not self.store.swap_refresh_token_hash(user.id, current_hash, new_hash):
            logger.warning("concurrent refresh lost the rotation race for user %s", user.id)
            raise InvalidOrExpiredToken()

        logger.debug("refresh token rotated for user %s", user.id)
        return pair

    def validate(self, payload: Dict[str, Any]) -> User:
        """Resolve the user behind an already verified access-token payload."""
        subject = (payload or {}).get("sub")
        if not subject:
            raise Unauthenticated()
        user = self.store.load_by_id(subject)
        if user is None:
            raise Unauthenticated()
        return user

    def authenticate(self, access_token: str) -> User:
        try:
            payload = self.codec.verify(access_token, self.access_secret, ACCESS)
        except TokenError as exc:
            logger.debug("access token rejected: %s", exc)
            raise Unauthenticated() from exc
        return self.validate(payload)
