"""
Core recommendation logic: rank friends-of-friends by mutual connections.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Collection, Iterable, List, NamedTuple


logger = logging.getLogger(__name__)


class FriendLinks(NamedTuple):
    """One direct friend of the requesting user, with that friend's own friends."""

    friend_id: str
    friend_ids: frozenset


@dataclass(frozen=True)
class Candidate:
    """A recommended user and the number of direct friends they share."""

    id: str
    mutual_count: int


def rank(
    user_id: str,
    direct_friend_ids: Collection[str],
    snapshot: Iterable[FriendLinks],
    exclude: Collection[str] = (),
) -> List[Candidate]:
    """
    Recommend friends based on number of mutual connections.

    Every id reachable through a direct friend counts once per friend that
    knows it. The requesting user, their direct friends and anything in
    `exclude` are never returned. Results are sorted by mutual count,
    highest first, with ties ordered by ascending id.
    """
    if not direct_friend_ids:
        return []

    direct = set(direct_friend_ids)
    skip = set(exclude)
    tally: Counter = Counter()

    for _friend_id, friends_of_friend in snapshot:
        for mutual_id in friends_of_friend:
            if mutual_id == user_id or mutual_id in direct or mutual_id in skip:
                continue
            tally[mutual_id] += 1

    ranked = sorted(tally.items(), key=lambda item: (-item[1], str(item[0])))
    logger.debug(
        "Ranked %d candidates for user %s from %d direct friends",
        len(ranked),
        user_id,
        len(direct),
    )
    return [Candidate(id=candidate_id, mutual_count=count) for candidate_id, count in ranked]
