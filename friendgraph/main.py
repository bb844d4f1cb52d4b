"""
FastAPI application exposing accounts, friend requests and mutual-friend
recommendations.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from neo4j.exceptions import DriverError, Neo4jError

from .auth import create_access_token, get_current_user_id, hash_password, verify_password
from .config import get_settings
from .db import close_driver, neo4j_session
from .errors import InvalidFriendOperation, UsernameTakenError
from .graph import SocialGraph
from .models import (
    Credentials,
    MessageResponse,
    Profile,
    Recommendation,
    SignupResponse,
    TokenResponse,
    User,
)
from .recommendation import rank


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

STORE_ERRORS = (Neo4jError, DriverError)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown events."""
    logger.info("Friend graph API starting up...")
    logger.info("Neo4j URI: %s", settings.neo4j_uri)
    logger.info("Exclude pending requests by default: %s", settings.exclude_pending)
    if settings.ensure_constraints:
        try:
            async with neo4j_session() as session:
                await SocialGraph(session).ensure_constraints()
        except STORE_ERRORS:
            logger.exception("Could not create User constraints")
    yield
    await close_driver()
    logger.info("Friend graph API shutting down...")


app = FastAPI(
    title="Friend Graph API",
    description="Neo4j-backed friend requests and mutual-friend recommendations.",
    version="0.2.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def get_graph() -> SocialGraph:
    """Dependency to inject a SocialGraph bound to a fresh Neo4j session."""
    async with neo4j_session() as session:
        yield SocialGraph(session)


def _store_failure(message: str) -> HTTPException:
    logger.exception(message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@app.post(
    "/api/users/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
)
async def signup(
    body: Credentials,
    graph: SocialGraph = Depends(get_graph),
) -> SignupResponse:
    """Register a new user."""
    try:
        user = await graph.create_user(body.username, hash_password(body.password))
    except UsernameTakenError as exc:
        raise HTTPException(status_code=400, detail="Error creating user") from exc
    except STORE_ERRORS as exc:
        raise _store_failure("Error creating user") from exc
    return SignupResponse(message="User registered successfully", id=user.id)


@app.post("/api/users/login", response_model=TokenResponse)
async def login(
    body: Credentials,
    graph: SocialGraph = Depends(get_graph),
) -> TokenResponse:
    """Exchange a username and password for an access token."""
    try:
        user = await graph.get_user_by_username(body.username)
    except STORE_ERRORS as exc:
        raise _store_failure("Error logging in") from exc

    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenResponse(token=create_access_token(user.id))


@app.get("/api/users/me", response_model=Profile)
async def me(
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> Profile:
    """Current user with direct and friend-of-friend counts."""
    try:
        user = await graph.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        direct_count, fof_count = await graph.get_friend_counts(user_id)
    except STORE_ERRORS as exc:
        raise _store_failure("Error fetching user") from exc

    return Profile(
        id=user.id,
        username=user.username,
        direct_friends_count=direct_count,
        friends_of_friends_count=fof_count,
    )


@app.get("/api/users/search", response_model=List[User])
async def search_users(
    search: str = Query("", description="Part of the username, case-insensitive"),
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> List[User]:
    """Search other users by username."""
    try:
        users = await graph.search_users(search, exclude_id=user_id, limit=limit)
    except STORE_ERRORS as exc:
        raise _store_failure("Error fetching users") from exc
    return [User(id=u.id, username=u.username) for u in users]


@app.get("/api/users/friends", response_model=List[User])
async def list_friends(
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> List[User]:
    """Confirmed friends of the current user."""
    try:
        friends = await graph.get_friends(user_id)
    except STORE_ERRORS as exc:
        raise _store_failure("Error fetching friends") from exc
    return [User(id=f.id, username=f.username) for f in friends]


@app.get("/api/users/friend-requests", response_model=List[User])
async def list_friend_requests(
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> List[User]:
    """Pending requests sent to the current user."""
    try:
        requesters = await graph.get_pending_requests(user_id)
    except STORE_ERRORS as exc:
        raise _store_failure("Error fetching friend requests") from exc
    return [User(id=r.id, username=r.username) for r in requesters]


@app.post("/api/users/friend-request/{target_id}", response_model=MessageResponse)
async def send_friend_request(
    target_id: str,
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> MessageResponse:
    try:
        await graph.send_friend_request(user_id, target_id)
    except InvalidFriendOperation as exc:
        logger.info("Rejected friend request %s -> %s: %s", user_id, target_id, exc)
        raise HTTPException(status_code=400, detail="Invalid operation") from exc
    except STORE_ERRORS as exc:
        raise _store_failure("Error sending friend request") from exc
    return MessageResponse(message="Friend request sent")


@app.post("/api/users/accept-request/{requester_id}", response_model=MessageResponse)
async def accept_friend_request(
    requester_id: str,
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> MessageResponse:
    try:
        await graph.accept_friend_request(user_id, requester_id)
    except InvalidFriendOperation as exc:
        logger.info("Rejected accept %s -> %s: %s", requester_id, user_id, exc)
        raise HTTPException(status_code=400, detail="Invalid operation") from exc
    except STORE_ERRORS as exc:
        raise _store_failure("Error accepting friend request") from exc
    return MessageResponse(message="Friend request accepted")


@app.get("/api/users/recommendations", response_model=List[Recommendation])
async def recommendations(
    exclude_pending: Optional[bool] = Query(
        None, description="Leave out users with a pending request either way"
    ),
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    graph: SocialGraph = Depends(get_graph),
) -> List[Recommendation]:
    """Friend recommendations based on mutual connections."""
    if exclude_pending is None:
        exclude_pending = settings.exclude_pending

    try:
        friend_ids = await graph.get_friend_ids(user_id)
        if not friend_ids:
            return []
        snapshot = await graph.get_social_snapshot(user_id)
        exclude = await graph.get_pending_ids(user_id) if exclude_pending else set()
    except STORE_ERRORS as exc:
        raise _store_failure("Error fetching recommendations") from exc

    candidates = rank(user_id, friend_ids, snapshot, exclude=exclude)
    if limit is not None:
        candidates = candidates[:limit]
    return [Recommendation(id=c.id, mutual_count=c.mutual_count) for c in candidates]


@app.get("/health")
async def health() -> dict:
    """Simple health-check endpoint used by Docker and external probes."""
    return {"status": "ok"}


@app.get("/api/debug/stats")
async def debug_stats(graph: SocialGraph = Depends(get_graph)) -> dict:
    """
    Diagnostic endpoint to check the Neo4j connection and data counts.
    """
    stats = await graph.stats()
    stats["neo4j_uri"] = settings.neo4j_uri
    return stats
