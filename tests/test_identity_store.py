"""Unit tests for auth/store.py -- both identity repositories.

Every test runs against InMemoryIdentityStore and SqlIdentityStore
(sqlite:///:memory:), so the two backends stay behaviourally identical.

Covers:
- put() / get() round trip and exact-match lookup
- put() on an existing username replaces digest and role but keeps the id
- SQL metacharacters in usernames are stored and matched literally
- set_role() on known and unknown usernames
- ping()
"""

import pytest

from auth.models import Identity
from auth.store import InMemoryIdentityStore, SqlIdentityStore


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        s = InMemoryIdentityStore()
    else:
        s = SqlIdentityStore("sqlite:///:memory:")
    yield s
    s.close()


def test_get_missing_returns_none(store):
    assert store.get("nobody") is None


def test_put_then_get(store):
    store.put(Identity(username="alice", password_digest="digest-1"))
    identity = store.get("alice")
    assert identity.username == "alice"
    assert identity.password_digest == "digest-1"
    assert identity.role == "user"
    assert identity.id is not None


def test_lookup_is_exact(store):
    store.put(Identity(username="alice", password_digest="digest-1"))
    assert store.get("Alice") is None
    assert store.get("alice ") is None
    assert store.get("alic") is None


def test_overwrite_replaces_role_and_keeps_id(store):
    store.put(Identity(username="alice", password_digest="digest-1"))
    first = store.get("alice")
    assert store.set_role("alice", "operator")

    store.put(Identity(username="alice", password_digest="digest-2", role="user"))
    second = store.get("alice")
    assert second.password_digest == "digest-2"
    assert second.id == first.id
    assert second.role == "user"


def test_overwrite_can_write_operator(store):
    store.put(Identity(username="ops", password_digest="digest-1"))
    store.put(Identity(username="ops", password_digest="digest-2", role="operator"))
    assert store.get("ops").role == "operator"


@pytest.mark.parametrize(
    "username",
    [
        "alice' OR '1'='1",
        "bob'; DROP TABLE users; --",
        'carol" --',
        "%",
        "_",
    ],
)
def test_metacharacters_stored_literally(store, username):
    store.put(Identity(username="alice", password_digest="digest-a"))
    store.put(Identity(username=username, password_digest="digest-x"))
    assert store.get(username).password_digest == "digest-x"
    assert store.get("alice").password_digest == "digest-a"


def test_set_role_unknown_user(store):
    assert store.set_role("nobody", "operator") is False
    assert store.get("nobody") is None


def test_returned_identity_is_a_copy():
    store = InMemoryIdentityStore()
    store.put(Identity(username="alice", password_digest="digest-1"))
    store.get("alice").role = "operator"
    assert store.get("alice").role == "user"


def test_ping(store):
    assert store.ping() is True
