"""
Unit tests for mutual-friend ranking.
"""

from friendgraph.recommendation import Candidate, FriendLinks, rank


def links(friend_id, *friends):
    return FriendLinks(friend_id=friend_id, friend_ids=frozenset(friends))


def test_rank_counts_mutual_friends():
    snapshot = [links("A", "U", "B", "C"), links("B", "U", "A", "C", "D")]
    result = rank("U", {"A", "B"}, snapshot)
    assert result == [Candidate("C", 2), Candidate("D", 1)]


def test_rank_only_self_behind_friend():
    assert rank("U", {"A"}, [links("A", "U")]) == []


def test_rank_no_friends_ignores_snapshot():
    assert rank("U", set(), [links("A", "X", "Y")]) == []


def test_rank_empty_snapshot():
    assert rank("U", {"A"}, []) == []


def test_rank_never_returns_self_or_direct_friends():
    snapshot = [
        links("A", "U", "B", "X", "Y"),
        links("B", "U", "A", "Y", "Z"),
        links("C", "U", "A", "B", "Z"),
    ]
    direct = {"A", "B", "C"}
    result = rank("U", direct, snapshot)
    ids = [c.id for c in result]
    assert "U" not in ids
    assert not direct.intersection(ids)
    assert all(c.mutual_count >= 1 for c in result)


def test_rank_sorted_descending_with_id_tie_break():
    snapshot = [
        links("A", "Z", "M", "B2"),
        links("B", "Z", "M", "K"),
        links("C", "Z", "B2"),
    ]
    result = rank("U", {"A", "B", "C"}, snapshot)
    assert [(c.id, c.mutual_count) for c in result] == [
        ("Z", 3),
        ("B2", 2),
        ("M", 2),
        ("K", 1),
    ]


def test_rank_is_deterministic_regardless_of_snapshot_order():
    snapshot = [links("A", "X", "Y"), links("B", "Y", "X"), links("C", "W")]
    first = rank("U", {"A", "B", "C"}, snapshot)
    second = rank("U", {"A", "B", "C"}, list(reversed(snapshot)))
    assert first == second
    assert first == rank("U", {"A", "B", "C"}, snapshot)


def test_rank_exclude_drops_pending_ids():
    snapshot = [links("A", "C", "D"), links("B", "C")]
    result = rank("U", {"A", "B"}, snapshot, exclude={"C"})
    assert result == [Candidate("D", 1)]


def test_rank_does_not_keep_state_between_calls():
    snapshot = [links("A", "C")]
    rank("U", {"A"}, snapshot)
    assert rank("U", {"A"}, snapshot) == [Candidate("C", 1)]
