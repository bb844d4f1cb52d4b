"""
Shared fixtures: an in-memory stand-in for the Neo4j social graph and a
TestClient wired to it.
"""

import os
import uuid
from typing import Dict, List, Optional, Set, Tuple

# Settings read the environment when friendgraph.config is first imported.
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-at-least-32-bytes-long")
os.environ.setdefault("NEO4J_ENSURE_CONSTRAINTS", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from friendgraph.errors import InvalidFriendOperation, UsernameTakenError  # noqa: E402
from friendgraph.graph import UserRecord  # noqa: E402
from friendgraph.main import app, get_graph  # noqa: E402
from friendgraph.recommendation import FriendLinks  # noqa: E402


class InMemorySocialGraph:
    """Same behaviour as SocialGraph, backed by dicts and sets."""

    def __init__(self) -> None:
        self.users: Dict[str, UserRecord] = {}
        self.knows: Dict[str, Set[str]] = {}
        self.requests: Set[Tuple[str, str]] = set()

    def add_user(self, username: str, user_id: str | None = None) -> UserRecord:
        user = UserRecord(id=user_id or str(uuid.uuid4()), username=username)
        self.users[user.id] = user
        self.knows.setdefault(user.id, set())
        return user

    def befriend(self, a: str, b: str) -> None:
        self.knows[a].add(b)
        self.knows[b].add(a)

    async def create_user(self, username: str, password_hash: str) -> UserRecord:
        if await self.get_user_by_username(username) is not None:
            raise UsernameTakenError(username)
        user = UserRecord(id=str(uuid.uuid4()), username=username, password_hash=password_hash)
        self.users[user.id] = user
        self.knows[user.id] = set()
        return user

    async def get_user(self, user_id: str):
        return self.users.get(user_id)

    async def get_user_by_username(self, username: str):
        return next((u for u in self.users.values() if u.username == username), None)

    async def search_users(
        self, term: str, exclude_id: str, limit: Optional[int] = None
    ) -> List[UserRecord]:
        found = [
            u
            for u in self.users.values()
            if u.id != exclude_id and term.lower() in (u.username or "").lower()
        ]
        return sorted(found, key=lambda u: u.username)[:limit]

    async def get_friend_ids(self, user_id: str) -> Set[str]:
        return set(self.knows.get(user_id, set()))

    async def get_friends(self, user_id: str) -> List[UserRecord]:
        return sorted((self.users[f] for f in self.knows.get(user_id, set())), key=lambda u: u.username)

    async def get_social_snapshot(self, user_id: str) -> List[FriendLinks]:
        return [
            FriendLinks(friend_id=f, friend_ids=frozenset(self.knows.get(f, set())))
            for f in sorted(self.knows.get(user_id, set()))
        ]

    async def get_friend_counts(self, user_id: str) -> Tuple[int, int]:
        direct = self.knows.get(user_id, set())
        fof = {g for f in direct for g in self.knows.get(f, set())} - direct - {user_id}
        return len(direct), len(fof)

    async def get_pending_requests(self, user_id: str) -> List[UserRecord]:
        return sorted(
            (self.users[src] for src, dst in self.requests if dst == user_id),
            key=lambda u: u.username,
        )

    async def get_pending_ids(self, user_id: str) -> Set[str]:
        return {dst if src == user_id else src for src, dst in self.requests if user_id in (src, dst)}

    async def send_friend_request(self, from_id: str, to_id: str) -> None:
        if from_id == to_id or from_id not in self.users or to_id not in self.users:
            raise InvalidFriendOperation(to_id)
        if to_id in self.knows[from_id]:
            raise InvalidFriendOperation(to_id)
        self.requests.add((from_id, to_id))

    async def accept_friend_request(self, user_id: str, requester_id: str) -> None:
        if (requester_id, user_id) not in self.requests:
            raise InvalidFriendOperation(requester_id)
        self.requests.discard((requester_id, user_id))
        self.requests.discard((user_id, requester_id))
        self.befriend(user_id, requester_id)

    async def stats(self) -> dict:
        return {
            "connection_ok": True,
            "user_count": len(self.users),
            "knows_relationships_count": sum(len(f) for f in self.knows.values()),
            "pending_requests_count": len(self.requests),
        }


@pytest.fixture
def graph() -> InMemorySocialGraph:
    return InMemorySocialGraph()


@pytest.fixture
def client(graph: InMemorySocialGraph):
    async def _override():
        yield graph

    app.dependency_overrides[get_graph] = _override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def register(client: TestClient):
    """Sign up and log in a user; returns (user_id, auth headers)."""

    def _register(username: str, password: str = "pass12345"):
        resp = client.post("/api/users/signup", json={"username": username, "password": password})
        assert resp.status_code == 201
        user_id = resp.json()["id"]
        resp = client.post("/api/users/login", json={"username": username, "password": password})
        assert resp.status_code == 200
        return user_id, {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register
