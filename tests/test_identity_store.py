import threading

import pytest

from components.identity import (
    ConcurrencyConflict, CredentialStore, InMemoryUserRepository, PasswordHasher, PasswordPolicy,
    SqliteUserRepository, UserNotFound, UsernameTaken, WeakPassword,
)


def make_store(kind="memory"):
    repo = InMemoryUserRepository() if kind == "memory" else SqliteUserRepository(":memory:")
    return CredentialStore(repo=repo, hasher=PasswordHasher(iterations=1000))


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    return make_store(request.param)


def test_hash_round_trip_and_fresh_salt():
    hasher = PasswordHasher(iterations=1000)
    h1 = hasher.hash("Secret123!")
    h2 = hasher.hash("Secret123!")
    assert h1 != h2  # salt differs per call
    assert h1.startswith("pbkdf2_sha256$1000$")
    assert "Secret123!" not in h1
    assert hasher.verify(h1, "Secret123!")
    assert hasher.verify(h2, "Secret123!")
    assert not hasher.verify(h1, "Secret123?")
    assert not hasher.verify(h1, "")


def test_verify_rejects_garbage_encodings():
    hasher = PasswordHasher(iterations=1000)
    assert not hasher.verify("", "x")
    assert not hasher.verify("md5$1$salt$abcd", "x")
    assert not hasher.verify("pbkdf2_sha256$notanint$salt$abcd", "x")
    assert not hasher.verify("pbkdf2_sha256$1000$salt$zz", "x")


def test_needs_rehash_when_iterations_change():
    old = PasswordHasher(iterations=1000).hash("Secret123!")
    assert PasswordHasher(iterations=2000).needs_rehash(old)
    assert not PasswordHasher(iterations=1000).needs_rehash(old)


def test_password_policy_reports_each_failure():
    policy = PasswordPolicy()
    assert policy.failures("Secret123!") == []
    assert set(policy.failures("abc")) == {"min_length:6", "digit", "uppercase", "non_alphanumeric"}
    with pytest.raises(WeakPassword) as ei:
        policy.check("secret123!")
    assert ei.value.failures == ["uppercase"]


def test_create_and_find_is_case_insensitive(store):
    user = store.create_user("Alice", "Secret123!", ["admin"])
    assert user.roles == frozenset({"admin"})
    assert user.normalized_username == "alice"

    found = store.find_by_username("ALICE")
    assert found.id == user.id
    assert found.username == "Alice"
    assert store.find_by_id(user.id).id == user.id
    assert store.verify_password(found, "Secret123!")
    assert not store.verify_password(found, "secret123!")


def test_duplicate_username_differs_only_by_case(store):
    store.create_user("alice", "Secret123!", [])
    with pytest.raises(UsernameTaken):
        store.create_user("ALICE", "Another1!", [])


def test_unknown_user_raises_not_found(store):
    with pytest.raises(UserNotFound):
        store.find_by_username("nobody")
    with pytest.raises(UserNotFound):
        store.find_by_id("missing")


def test_weak_password_is_not_stored(store):
    with pytest.raises(WeakPassword):
        store.create_user("bob", "password", [])
    with pytest.raises(UserNotFound):
        store.find_by_username("bob")


def test_change_password_bumps_stamp(store):
    user = store.create_user("alice", "Secret123!", [])
    updated = store.change_password(user, "NewSecret456?")
    assert updated.security_stamp != user.security_stamp
    assert store.verify_password(updated, "NewSecret456?")
    assert not store.verify_password(updated, "Secret123!")


def test_stale_stamp_is_rejected(store):
    user = store.create_user("alice", "Secret123!", [])
    store.change_password(user, "NewSecret456?")
    with pytest.raises(ConcurrencyConflict):
        store.change_password(user, "Other789#")
    # the winning write is intact
    current = store.find_by_username("alice")
    assert store.verify_password(current, "NewSecret456?")


def test_racing_password_changes_exactly_one_commits(store):
    user = store.create_user("alice", "Secret123!", [])
    barrier = threading.Barrier(2)
    results = []

    def change(pw):
        barrier.wait()
        try:
            store.change_password(user, pw)
            results.append(("ok", pw))
        except ConcurrencyConflict:
            results.append(("conflict", pw))

    threads = [threading.Thread(target=change, args=(pw,)) for pw in ("First111!", "Second222!")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    outcomes = sorted(r[0] for r in results)
    assert outcomes == ["conflict", "ok"]
    winner = next(pw for status, pw in results if status == "ok")
    assert store.verify_password(store.find_by_username("alice"), winner)


def test_set_roles_and_deactivate(store):
    user = store.create_user("bob", "Secret123!", ["reader"])
    user = store.set_roles(user, ["admin", " reader ", ""])
    assert user.roles == frozenset({"admin", "reader"})
    user = store.deactivate(user)
    assert user.is_active is False
    assert store.find_by_username("bob").is_active is False


def test_ping_reports_backend_state():
    repo = SqliteUserRepository(":memory:")
    store = CredentialStore(repo=repo, hasher=PasswordHasher(iterations=1000))
    assert store.ping() is True
    repo.close()
    assert store.ping() is False


def test_sqlite_store_persists_across_connections(tmp_path):
    path = str(tmp_path / "identity.db")
    first = SqliteUserRepository(path)
    CredentialStore(repo=first, hasher=PasswordHasher(iterations=1000)).create_user("carol", "Secret123!", ["ops"])
    first.close()

    second = CredentialStore(repo=SqliteUserRepository(path), hasher=PasswordHasher(iterations=1000))
    carol = second.find_by_username("Carol")
    assert carol.roles == frozenset({"ops"})
    assert second.verify_password(carol, "Secret123!")


def test_decoy_verification_is_always_false(store):
    assert store.verify_decoy("Secret123!") is False
    assert store.verify_decoy("") is False


def test_rehash_if_needed_upgrades_iterations(store):
    user = store.create_user("dave", "Secret123!", [])
    assert store.rehash_if_needed(user, "Secret123!") is user

    store.hasher = PasswordHasher(iterations=2000)
    upgraded = store.rehash_if_needed(user, "Secret123!")
    assert upgraded.password_hash.startswith("pbkdf2_sha256$2000$")
    assert upgraded.security_stamp != user.security_stamp
    assert store.verify_password(upgraded, "Secret123!")

    # stale stamp: a concurrent writer already moved on, nothing is overwritten
    assert store.rehash_if_needed(user, "Secret123!") is user
    assert store.find_by_id(user.id).password_hash == upgraded.password_hash
