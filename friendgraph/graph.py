"""
Neo4j-backed social graph: accounts, friend requests and the two-hop
reads that feed the recommendation ranker.

Confirmed friendships are stored as a pair of :KNOWS relationships (one in
each direction); a pending request is a single :REQUESTED relationship from
the requester to the recipient.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Set, Tuple

from neo4j import AsyncSession
from neo4j.exceptions import ConstraintError, DriverError, Neo4jError

from .errors import InvalidFriendOperation, UsernameTakenError
from .recommendation import FriendLinks


logger = logging.getLogger(__name__)

USER_CONSTRAINTS = (
    "CREATE CONSTRAINT user_id_unique IF NOT EXISTS FOR (u:User) REQUIRE u.id IS UNIQUE",
    "CREATE CONSTRAINT user_username_unique IF NOT EXISTS FOR (u:User) REQUIRE u.username IS UNIQUE",
)


class UserRecord(NamedTuple):
    """A stored :User node."""

    id: str
    username: str
    password_hash: Optional[str] = None


class SocialGraph:
    """Queries and updates over the :User / :KNOWS / :REQUESTED graph."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── Accounts ───────────────────────────────────

    async def ensure_constraints(self) -> None:
        """Create the uniqueness constraints on :User id and username if missing."""
        for query in USER_CONSTRAINTS:
            result = await self._session.run(query)
            await result.consume()
        logger.info("User constraints ensured")

    async def create_user(self, username: str, password_hash: str) -> UserRecord:
        """Create a user. Raises UsernameTakenError if the username exists."""
        if await self.get_user_by_username(username) is not None:
            raise UsernameTakenError(username)

        user_id = str(uuid.uuid4())
        query = """
        CREATE (u:User {id: $id, username: $username,
                        password_hash: $password_hash, created_at: $created_at})
        RETURN u.id AS id
        """
        try:
            result = await self._session.run(
                query,
                id=user_id,
                username=username,
                password_hash=password_hash,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            await result.consume()
        except ConstraintError as exc:
            raise UsernameTakenError(username) from exc

        logger.info("Created user %s (%s)", username, user_id)
        return UserRecord(id=user_id, username=username, password_hash=password_hash)

    async def get_user(self, user_id: str) -> UserRecord | None:
        query = """
        MATCH (u:User {id: $user_id})
        RETURN u.id AS id, u.username AS username, u.password_hash AS password_hash
        """
        result = await self._session.run(query, user_id=user_id)
        record = await result.single()
        return _to_user(record)

    async def get_user_by_username(self, username: str) -> UserRecord | None:
        query = """
        MATCH (u:User {username: $username})
        RETURN u.id AS id, u.username AS username, u.password_hash AS password_hash
        """
        result = await self._session.run(query, username=username)
        record = await result.single()
        return _to_user(record)

    async def search_users(
        self,
        term: str,
        exclude_id: str,
        limit: Optional[int] = None,
    ) -> List[UserRecord]:
        """
        Search users by case-insensitive username substring, never returning
        `exclude_id` (the caller). Every match is returned unless `limit` is set.
        """
        query = """
        MATCH (u:User)
        WHERE u.id <> $exclude_id
          AND toLower(coalesce(u.username, '')) CONTAINS toLower($term)
        RETURN u.id AS id, u.username AS username
        ORDER BY username
        """
        params = {"term": term, "exclude_id": exclude_id}
        if limit is not None:
            query += "LIMIT $limit\n"
            params["limit"] = limit
        result = await self._session.run(query, **params)
        records = await result.data()
        return [UserRecord(id=r["id"], username=r.get("username")) for r in records]

    # ── Friendships ────────────────────────────────

    async def get_friend_ids(self, user_id: str) -> Set[str]:
        query = """
        MATCH (:User {id: $user_id})-[:KNOWS]->(f:User)
        RETURN DISTINCT f.id AS id
        """
        result = await self._session.run(query, user_id=user_id)
        records = await result.data()
        return {r["id"] for r in records}

    async def get_friends(self, user_id: str) -> List[UserRecord]:
        query = """
        MATCH (:User {id: $user_id})-[:KNOWS]->(f:User)
        RETURN DISTINCT f.id AS id, f.username AS username
        ORDER BY username
        """
        result = await self._session.run(query, user_id=user_id)
        records = await result.data()
        return [UserRecord(id=r["id"], username=r.get("username")) for r in records]

    async def get_social_snapshot(self, user_id: str) -> List[FriendLinks]:
        """
        Return each direct friend of `user_id` with that friend's own friends.

        Only two hops are read. A friend without friends gets an empty set.
        """
        query = """
        MATCH (:User {id: $user_id})-[:KNOWS]->(f:User)
        OPTIONAL MATCH (f)-[:KNOWS]->(g:User)
        RETURN f.id AS friend_id, collect(DISTINCT g.id) AS friend_ids
        ORDER BY friend_id
        """
        result = await self._session.run(query, user_id=user_id)
        records = await result.data()
        return [
            FriendLinks(friend_id=r["friend_id"], friend_ids=frozenset(r["friend_ids"] or []))
            for r in records
        ]

    async def get_friend_counts(self, user_id: str) -> Tuple[int, int]:
        """
        Return (number_of_direct_friends, number_of_friend_of_friend_candidates)
        for a given user.
        """
        direct_query = """
        MATCH (u:User {id: $user_id})-[:KNOWS]->(f:User)
        RETURN count(DISTINCT f) AS cnt
        """
        res1 = await self._session.run(direct_query, user_id=user_id)
        rec1 = await res1.single()
        direct_friends = rec1["cnt"] if rec1 is not None else 0

        # Friends of friends who are neither the user nor already a friend.
        fof_query = """
        MATCH (u:User {id: $user_id})-[:KNOWS]->(:User)-[:KNOWS]->(rec:User)
        WHERE rec.id <> $user_id AND NOT (u)-[:KNOWS]->(rec)
        RETURN count(DISTINCT rec) AS cnt
        """
        res2 = await self._session.run(fof_query, user_id=user_id)
        rec2 = await res2.single()
        friends_of_friends = rec2["cnt"] if rec2 is not None else 0

        return int(direct_friends), int(friends_of_friends)

    # ── Friend requests ────────────────────────────

    async def get_pending_requests(self, user_id: str) -> List[UserRecord]:
        """Users who have sent `user_id` a request that is still pending."""
        query = """
        MATCH (r:User)-[:REQUESTED]->(:User {id: $user_id})
        RETURN r.id AS id, r.username AS username
        ORDER BY username
        """
        result = await self._session.run(query, user_id=user_id)
        records = await result.data()
        return [UserRecord(id=r["id"], username=r.get("username")) for r in records]

    async def get_pending_ids(self, user_id: str) -> Set[str]:
        """Ids with a pending request to or from `user_id`."""
        query = """
        MATCH (:User {id: $user_id})-[:REQUESTED]-(other:User)
        RETURN DISTINCT other.id AS id
        """
        result = await self._session.run(query, user_id=user_id)
        records = await result.data()
        return {r["id"] for r in records}

    async def send_friend_request(self, from_id: str, to_id: str) -> None:
        """
        Record a pending request from `from_id` to `to_id`.

        Sending the same request twice is a no-op.
        """
        if from_id == to_id:
            raise InvalidFriendOperation("Cannot send a friend request to yourself")
        if await self.get_user(from_id) is None:
            raise InvalidFriendOperation(f"Unknown sender {from_id}")
        if await self.get_user(to_id) is None:
            raise InvalidFriendOperation(f"Unknown user {to_id}")
        if to_id in await self.get_friend_ids(from_id):
            raise InvalidFriendOperation(f"Already friends with {to_id}")

        query = """
        MATCH (a:User {id: $from_id}), (b:User {id: $to_id})
        MERGE (a)-[:REQUESTED]->(b)
        """
        result = await self._session.run(query, from_id=from_id, to_id=to_id)
        await result.consume()
        logger.info("Friend request %s -> %s", from_id, to_id)

    async def accept_friend_request(self, user_id: str, requester_id: str) -> None:
        """
        Accept the pending request `requester_id` sent to `user_id`.

        Creates the friendship in both directions and clears any request
        between the two users.
        """
        check_query = """
        MATCH (:User {id: $requester_id})-[q:REQUESTED]->(:User {id: $user_id})
        RETURN count(q) AS cnt
        """
        result = await self._session.run(check_query, requester_id=requester_id, user_id=user_id)
        record = await result.single()
        if record is None or record["cnt"] == 0:
            raise InvalidFriendOperation(f"No pending request from {requester_id}")

        accept_query = """
        MATCH (r:User {id: $requester_id})-[q:REQUESTED]->(u:User {id: $user_id})
        DELETE q
        MERGE (u)-[:KNOWS]->(r)
        MERGE (r)-[:KNOWS]->(u)
        WITH u, r
        OPTIONAL MATCH (u)-[back:REQUESTED]->(r)
        DELETE back
        """
        result = await self._session.run(accept_query, requester_id=requester_id, user_id=user_id)
        await result.consume()
        logger.info("Friend request %s -> %s accepted", requester_id, user_id)

    # ── Diagnostics ────────────────────────────────

    async def stats(self) -> dict:
        """
        Connection check plus node and relationship counts.

        Each count is queried independently; a failing query is reported
        under `<name>_error` instead of aborting the others.
        """
        try:
            result = await self._session.run("RETURN 1 AS test")
            await result.single()
        except (Neo4jError, DriverError) as e:
            return {"connection_ok": False, "error": str(e)}

        stats: dict = {"connection_ok": True}
        count_queries = {
            "user_count": "MATCH (u:User) RETURN count(u) AS cnt",
            "knows_relationships_count": "MATCH ()-[r:KNOWS]->() RETURN count(r) AS cnt",
            "pending_requests_count": "MATCH ()-[r:REQUESTED]->() RETURN count(r) AS cnt",
        }
        for name, query in count_queries.items():
            try:
                result = await self._session.run(query)
                record = await result.single()
                stats[name] = record["cnt"] if record else 0
            except (Neo4jError, DriverError) as e:
                stats[f"{name}_error"] = str(e)

        try:
            result = await self._session.run(
                "MATCH (u:User) RETURN u.id AS id, u.username AS username LIMIT 5"
            )
            records = await result.data()
            stats["sample_users"] = [{"id": r["id"], "username": r.get("username")} for r in records]
        except (Neo4jError, DriverError) as e:
            stats["sample_users_error"] = str(e)

        return stats


def _to_user(record) -> UserRecord | None:
    if record is None:
        return None
    return UserRecord(
        id=record["id"],
        username=record["username"],
        password_hash=record["password_hash"],
    )
