"""
SessionTokenManager: issuance, login/register, refresh rotation and reuse detection.
"""
import threading
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from models import storage
from models.db_storage import DBStorage
from models.user_store import UserStore

from services.errors import (
    AlreadyExists,
    InvalidCredentials,
    InvalidOrExpiredToken,
    PersistenceFailure,
    Unauthenticated,
)
from services.session_tokens import SessionTokenManager
from utils.security import Hasher, TokenCodec

PASSWORD = "Secret123!"


def test_secrets_must_differ(store):
    with pytest.raises(ValueError):
        SessionTokenManager(store, TokenCodec(), Hasher(), access_secret="same", refresh_secret="same")


def test_secrets_are_required(store):
    with pytest.raises(ValueError):
        SessionTokenManager(store, TokenCodec(), Hasher(), access_secret="", refresh_secret="x")


class TestRegister:
    def test_register_returns_pair_and_stores_hash(self, tokens, alice, reload_user):
        user = reload_user(alice.user["id"])

        assert alice.access_token and alice.refresh_token
        assert alice.access_token != alice.refresh_token
        assert user.role == "user"
        assert user.is_email_verified is False
        assert tokens.hasher.verify(alice.refresh_token, user.refresh_token_hash)

    def test_register_sanitizes_user_view(self, alice):
        assert alice.user["email"] == "alice@example.com"
        for secret in ("password_hash", "refresh_token_hash", "email_verification_token", "reset_token_hash"):
            assert secret not in alice.user

    def test_register_duplicate_email(self, tokens, alice):
        with pytest.raises(AlreadyExists):
            tokens.register("alice@example.com", PASSWORD, "Other", "Person")

    def test_register_duplicate_wallet(self, tokens):
        wallet = "G" + "A" * 55
        tokens.register("a@example.com", PASSWORD, "A", "A", wallet_address=wallet)
        with pytest.raises(AlreadyExists):
            tokens.register("b@example.com", PASSWORD, "B", "B", wallet_address=wallet)

    def test_payload_carries_identity(self, tokens, alice):
        payload = tokens.codec.verify(alice.access_token, tokens.access_secret, "access")

        assert payload["sub"] == alice.user["id"]
        assert payload["email"] == "alice@example.com"
        assert payload["role"] == "user"
        assert "wallet_address" not in payload


class TestLogin:
    def test_login_success_rotates_stored_hash(self, tokens, alice, reload_user):
        pair = tokens.login("alice@example.com", PASSWORD)
        user = reload_user(pair.user["id"])

        assert tokens.hasher.verify(pair.refresh_token, user.refresh_token_hash)
        assert not tokens.hasher.verify(alice.refresh_token, user.refresh_token_hash)

    def test_wrong_password_and_unknown_email_look_alike(self, tokens, alice):
        with pytest.raises(InvalidCredentials) as wrong_pw:
            tokens.login("alice@example.com", "Wrong123!")
        with pytest.raises(InvalidCredentials) as unknown:
            tokens.login("nobody@example.com", PASSWORD)

        assert wrong_pw.value.message == unknown.value.message

    def test_failed_login_does_not_write(self, tokens, alice):
        with patch.object(tokens.store, "save", wraps=tokens.store.save) as save:
            with pytest.raises(InvalidCredentials):
                tokens.login("alice@example.com", "Wrong123!")
        save.assert_not_called()


class TestRefresh:
    def test_refresh_returns_new_pair_and_persists_its_hash(self, tokens, alice, reload_user):
        pair = tokens.refresh(alice.refresh_token)
        user = reload_user(alice.user["id"])

        assert pair.access_token != alice.access_token
        assert pair.refresh_token != alice.refresh_token
        assert tokens.hasher.verify(pair.refresh_token, user.refresh_token_hash)

    def test_issue_then_refresh_yields_different_tokens(self, tokens, alice, store):
        user = store.load_by_id(alice.user["id"])
        issued = tokens.issue(user)
        rotated = tokens.refresh(issued.refresh_token)

        assert rotated.access_token != issued.access_token
        assert rotated.refresh_token != issued.refresh_token

    def test_same_token_twice_succeeds_once_and_clears_session(self, tokens, alice, reload_user):
        tokens.refresh(alice.refresh_token)
        with pytest.raises(InvalidOrExpiredToken):
            tokens.refresh(alice.refresh_token)

        assert reload_user(alice.user["id"]).refresh_token_hash is None

    def test_no_session_fails_without_write(self, tokens, alice, store):
        user = store.load_by_id(alice.user["id"])
        user.refresh_token_hash = None
        store.save(user)

        with patch.object(tokens.store, "save", wraps=tokens.store.save) as save, \
                patch.object(tokens.store, "swap_refresh_token_hash") as swap:
            with pytest.raises(InvalidOrExpiredToken):
                tokens.refresh(alice.refresh_token)
        save.assert_not_called()
        swap.assert_not_called()

    def test_expired_token(self, tokens, alice, reload_user):
        expired = tokens.codec.sign(
            {"sub": alice.user["id"], "email": "alice@example.com", "role": "user"},
            tokens.refresh_secret,
            timedelta(seconds=-30),
            "refresh",
        )
        with pytest.raises(InvalidOrExpiredToken):
            tokens.refresh(expired)

        # an expired token proves nothing about theft; the session stays
        assert reload_user(alice.user["id"]).refresh_token_hash is not None

    def test_access_token_is_not_a_refresh_token(self, tokens, alice):
        with pytest.raises(InvalidOrExpiredToken):
            tokens.refresh(alice.access_token)

    def test_garbage_token(self, tokens):
        with pytest.raises(InvalidOrExpiredToken):
            tokens.refresh("not-a-jwt")

    def test_unknown_subject(self, tokens):
        ghost = tokens.codec.sign(
            {"sub": "00000000-0000-0000-0000-000000000000", "email": "x@example.com", "role": "user"},
            tokens.refresh_secret,
            timedelta(minutes=5),
            "refresh",
        )
        with pytest.raises(InvalidOrExpiredToken):
            tokens.refresh(ghost)

    def test_failed_revocation_write_surfaces_persistence_failure(self, tokens, alice):
        tokens.refresh(alice.refresh_token)
        with patch.object(tokens.store, "save", side_effect=PersistenceFailure()):
            with pytest.raises(PersistenceFailure):
                tokens.refresh(alice.refresh_token)

    def test_failed_issue_write_returns_no_pair_and_keeps_session(self, tokens, alice, store, reload_user):
        session = storage.get_session()()
        disk_error = OperationalError("COMMIT", {}, Exception("disk I/O error"))
        with patch.object(session, "commit", side_effect=disk_error):
            with pytest.raises(PersistenceFailure):
                tokens.issue(store.load_by_id(alice.user["id"]))
            with pytest.raises(PersistenceFailure):
                tokens.login("alice@example.com", PASSWORD)

        # the rollback discarded the unsaved hash, so the live token still rotates
        assert tokens.hasher.verify(alice.refresh_token, store.load_by_id(alice.user["id"]).refresh_token_hash)
        rotated = tokens.refresh(alice.refresh_token)
        assert tokens.hasher.verify(rotated.refresh_token, reload_user(alice.user["id"]).refresh_token_hash)

    def test_concurrent_refresh_with_same_token_succeeds_once(self, tokens, alice, reload_user):
        store = tokens.store
        real_swap = store.swap_refresh_token_hash
        winners = []
        raced = {"done": False}

        def racing_swap(user_id, expected, new):
            # the competing request rotates between our hash check and our write
            if not raced["done"]:
                raced["done"] = True
                winners.append(tokens.refresh(alice.refresh_token))
            return real_swap(user_id, expected, new)

        with patch.object(store, "swap_refresh_token_hash", side_effect=racing_swap):
            with pytest.raises(InvalidOrExpiredToken):
                tokens.refresh(alice.refresh_token)

        assert len(winners) == 1
        user = reload_user(alice.user["id"])
        assert tokens.hasher.verify(winners[0].refresh_token, user.refresh_token_hash)

    def test_refresh_race_across_threads(self, tokens, tmp_path, monkeypatch):
        # a file database gives each thread its own connection and session
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'race.db'}")
        file_storage = DBStorage()
        file_storage.reload()
        manager = SessionTokenManager(
            UserStore(file_storage),
            tokens.codec,
            tokens.hasher,
            access_secret=tokens.access_secret,
            refresh_secret=tokens.refresh_secret,
        )
        pair = manager.register("race@example.com", PASSWORD, "Race", "Condition")
        file_storage.close()

        store = manager.store
        real_swap = store.swap_refresh_token_hash
        barrier = threading.Barrier(2, timeout=10)
        write_lock = threading.Lock()
        outcomes = []

        def swap_together(user_id, expected, new):
            # both requests have passed the hash check before either writes;
            # sqlite allows one writer at a time
            barrier.wait()
            with write_lock:
                return real_swap(user_id, expected, new)

        def attempt():
            try:
                outcomes.append(manager.refresh(pair.refresh_token))
            except InvalidOrExpiredToken as exc:
                outcomes.append(exc)
            finally:
                file_storage.close()

        with patch.object(store, "swap_refresh_token_hash", side_effect=swap_together):
            threads = [threading.Thread(target=attempt) for _ in range(2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)

        winners = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(outcomes) == 2
        assert len(winners) == 1
        stored = store.load_by_id(pair.user["id"]).refresh_token_hash
        assert tokens.hasher.verify(winners[0].refresh_token, stored)
        file_storage.close()
        file_storage.drop_all()


def test_alice_scenario(tokens, store, reload_user):
    pair = tokens.register("alice@example.com", PASSWORD, "Alice", "Doe")
    user_id = pair.user["id"]
    assert reload_user(user_id).refresh_token_hash is not None

    with patch.object(tokens.store, "save", wraps=tokens.store.save) as save:
        with pytest.raises(InvalidCredentials):
            tokens.login("alice@example.com", "Wrong123!")
    save.assert_not_called()

    rotated = tokens.refresh(pair.refresh_token)
    assert rotated.refresh_token != pair.refresh_token

    with pytest.raises(InvalidOrExpiredToken):
        tokens.refresh(pair.refresh_token)
    assert reload_user(user_id).refresh_token_hash is None

    # the whole session is gone, not just the replayed token
    with pytest.raises(InvalidOrExpiredToken):
        tokens.refresh(rotated.refresh_token)


class TestValidate:
    def test_validate_returns_user(self, tokens, alice):
        user = tokens.validate({"sub": alice.user["id"]})
        assert user.email == "alice@example.com"

    def test_missing_subject(self, tokens):
        with pytest.raises(Unauthenticated):
            tokens.validate({"email": "alice@example.com"})

    def test_deleted_user(self, tokens):
        with pytest.raises(Unauthenticated):
            tokens.validate({"sub": "00000000-0000-0000-0000-000000000000"})

    def test_authenticate_access_token(self, tokens, alice):
        assert tokens.authenticate(alice.access_token).id == alice.user["id"]

    def test_authenticate_rejects_refresh_token(self, tokens, alice):
        with pytest.raises(Unauthenticated):
            tokens.authenticate(alice.refresh_token)
