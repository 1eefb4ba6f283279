from datetime import datetime, timedelta, timezone
import threading

import pytest

from models.refresh_token import RefreshToken
from models.repositories import SQLUserRepository
from models.user import User
from services.auth_service import AuthService, ClientInfo
from services.errors import (
    EmailAlreadyRegistered,
    InvalidAccessToken,
    InvalidCredentials,
    InvalidRefreshToken,
    UserNotFound,
)
from utils.security import ACCESS, REFRESH, PasswordHasher, hash_token


def _live_rows(storage, user_id):
    session = storage.get_session()
    return session.query(RefreshToken).filter(RefreshToken.user_id == user_id).all()


def test_register_then_login(auth_service):
    registered = auth_service.register("a@x.com", "password123", "A")
    logged_in = auth_service.login("a@x.com", "password123")

    assert registered.access_token != registered.refresh_token
    assert logged_in.access_token != logged_in.refresh_token
    assert logged_in.refresh_token != registered.refresh_token


def test_register_stores_hash_only(auth_service, storage):
    auth_service.register("a@x.com", "password123", "A")
    user = storage.get_session().query(User).filter(User.email == "a@x.com").one()

    assert user.password_hash != "password123"
    assert user.password_hash.startswith("$argon2")
    assert user.role == "user"
    assert user.is_active is True
    with pytest.raises(AttributeError):
        user.password


def test_token_claims_and_secrets(auth_service, settings):
    pair = auth_service.register("a@x.com", "password123", "A")
    signer = auth_service.signer

    access = signer.verify(pair.access_token, settings.access_secret, expected_type=ACCESS)
    refresh = signer.verify(pair.refresh_token, settings.refresh_secret, expected_type=REFRESH)
    assert access["sub"] == refresh["sub"]
    assert access["email"] == refresh["email"] == "a@x.com"
    assert access["exp"] - access["iat"] == int(settings.access_ttl.total_seconds())
    assert refresh["exp"] - refresh["iat"] == int(settings.refresh_ttl.total_seconds())

    # An access token is not accepted where a refresh token is expected
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh_subject(pair.access_token)


def test_register_duplicate_email(auth_service, storage):
    auth_service.register("a@x.com", "password123", "A")
    before = storage.count(User)

    with pytest.raises(EmailAlreadyRegistered) as excinfo:
        auth_service.register("a@x.com", "password456", "Other A")

    assert excinfo.value.message == "Email already registered"
    assert storage.count(User) == before


def test_register_duplicate_caught_by_unique_index(auth_service, storage, monkeypatch):
    auth_service.register("a@x.com", "password123", "A")
    # Skip the pre-emptive lookup so the insert itself collides
    monkeypatch.setattr(auth_service.users, "find_by_email", lambda email: None)

    with pytest.raises(EmailAlreadyRegistered):
        auth_service.register("a@x.com", "password456", "Other A")
    monkeypatch.undo()
    assert storage.count(User) == 1


def test_email_is_case_sensitive(auth_service):
    auth_service.register("a@x.com", "password123", "A")
    auth_service.register("A@x.com", "password123", "Upper A")

    with pytest.raises(InvalidCredentials):
        auth_service.login("A@X.COM", "password123")


def test_login_failures_are_indistinguishable(auth_service):
    auth_service.register("a@x.com", "password123", "A")

    with pytest.raises(InvalidCredentials) as unknown:
        auth_service.login("nobody@x.com", "password123")
    with pytest.raises(InvalidCredentials) as wrong:
        auth_service.login("a@x.com", "wrong")

    assert type(unknown.value) is type(wrong.value)
    assert unknown.value.kind == wrong.value.kind == "INVALID_CREDENTIALS"
    assert str(unknown.value) == str(wrong.value) == "Invalid credentials"


def test_login_keeps_single_refresh_row(auth_service, storage):
    pair = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(pair.refresh_token)
    auth_service.login("a@x.com", "password123")
    latest = auth_service.login("a@x.com", "password123", client=ClientInfo("127.0.0.1", "pytest"))

    rows = _live_rows(storage, user_id)
    assert len(rows) == 1
    assert rows[0].token_hash == hash_token(latest.refresh_token)
    assert rows[0].ip_address == "127.0.0.1"


def test_refresh_rotates_and_consumes(auth_service):
    auth_service.register("a@x.com", "password123", "A")
    pair = auth_service.login("a@x.com", "password123")
    user_id = auth_service.refresh_subject(pair.refresh_token)

    rotated = auth_service.refresh(user_id, pair.refresh_token)
    assert rotated.refresh_token != pair.refresh_token
    assert rotated.access_token != pair.access_token

    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(user_id, pair.refresh_token)

    # The replacement is still good
    auth_service.refresh(user_id, rotated.refresh_token)


def test_login_invalidates_earlier_refresh_token(auth_service):
    first = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(first.refresh_token)
    auth_service.login("a@x.com", "password123")

    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(user_id, first.refresh_token)


def test_refresh_rejects_expired_row(auth_service, storage):
    pair = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(pair.refresh_token)

    with storage.transaction() as session:
        session.query(RefreshToken).filter(RefreshToken.user_id == user_id).update(
            {RefreshToken.expires_at: datetime.now(timezone.utc) - timedelta(seconds=1)}
        )

    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(user_id, pair.refresh_token)


def test_refresh_with_foreign_user_id(auth_service):
    a = auth_service.register("a@x.com", "password123", "A")
    b = auth_service.register("b@x.com", "password123", "B")
    b_id = auth_service.refresh_subject(b.refresh_token)

    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(b_id, a.refresh_token)


def test_refresh_after_user_deleted(auth_service, users_service):
    pair = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(pair.refresh_token)
    users_service.delete(user_id)

    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(user_id, pair.refresh_token)


class _VanishingUsers(SQLUserRepository):
    def find_by_id(self, user_id):
        return None


def test_refresh_reports_missing_user(auth_service, storage):
    pair = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(pair.refresh_token)
    service = AuthService(
        users=_VanishingUsers(storage),
        refresh_tokens=auth_service.refresh_tokens,
        hasher=auth_service.hasher,
        signer=auth_service.signer,
        settings=auth_service.settings,
        storage=storage,
    )

    with pytest.raises(UserNotFound):
        service.refresh(user_id, pair.refresh_token)
    # The failed flow rolled back, so the token was not spent
    auth_service.refresh(user_id, pair.refresh_token)


def test_concurrent_refresh_only_one_wins(auth_service, storage):
    pair = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(pair.refresh_token)
    storage.close()

    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            auth_service.refresh(user_id, pair.refresh_token)
            result = "ok"
        except InvalidRefreshToken:
            result = "invalid"
        finally:
            storage.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["invalid", "ok"]
    assert len(_live_rows(storage, user_id)) == 1


def test_logout_removes_refresh_rows(auth_service, storage):
    pair = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(pair.refresh_token)

    assert auth_service.logout(user_id, pair.refresh_token) == 1
    assert _live_rows(storage, user_id) == []
    with pytest.raises(InvalidRefreshToken):
        auth_service.logout(user_id, pair.refresh_token)
    with pytest.raises(InvalidRefreshToken):
        auth_service.refresh(user_id, pair.refresh_token)


def test_logout_with_rotated_out_token_is_rejected(auth_service, storage):
    first = auth_service.register("a@x.com", "password123", "A")
    user_id = auth_service.refresh_subject(first.refresh_token)
    second = auth_service.refresh(user_id, first.refresh_token)

    with pytest.raises(InvalidRefreshToken):
        auth_service.logout(user_id, first.refresh_token)
    assert len(_live_rows(storage, user_id)) == 1

    # The current session was left alone
    third = auth_service.refresh(user_id, second.refresh_token)
    assert third.refresh_token != second.refresh_token


def test_logout_with_another_users_token_is_rejected(auth_service, storage):
    alice = auth_service.register("alice@x.com", "password123", "Alice")
    bob = auth_service.register("bob@x.com", "password123", "Bob")
    alice_id = auth_service.refresh_subject(alice.refresh_token)

    with pytest.raises(InvalidRefreshToken):
        auth_service.logout(alice_id, bob.refresh_token)
    assert len(_live_rows(storage, alice_id)) == 1


def test_authenticate_access_token(auth_service):
    pair = auth_service.register("a@x.com", "password123", "A")

    user = auth_service.authenticate(pair.access_token)
    assert user.email == "a@x.com"

    with pytest.raises(InvalidAccessToken):
        auth_service.authenticate(pair.refresh_token)
    with pytest.raises(InvalidAccessToken):
        auth_service.authenticate("garbage")


def test_authenticate_leaves_no_transaction_open(auth_service, storage):
    pair = auth_service.register("a@x.com", "password123", "A")
    storage.close()

    auth_service.authenticate(pair.access_token)
    assert not storage.get_session().in_transaction()


def test_login_rehashes_stale_digest(auth_service, storage):
    weak = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)
    with storage.transaction():
        user = SQLUserRepository(storage).create(
            email="a@x.com", password_hash=weak.hash("password123"), name="A"
        )
    stale = user.password_hash
    auth_service.hasher = PasswordHasher(time_cost=2, memory_cost=8, parallelism=1)

    auth_service.login("a@x.com", "password123")

    storage.get_session().expire_all()
    current = storage.get_session().get(User, user.id).password_hash
    assert current != stale
    assert not auth_service.hasher.needs_rehash(current)
    assert auth_service.hasher.verify("password123", current)
