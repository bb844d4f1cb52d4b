"""
Domain errors raised by the graph store and auth helpers.

Route handlers translate these into HTTP responses.
"""


class FriendGraphError(Exception):
    """Base class for service errors."""


class UsernameTakenError(FriendGraphError):
    """A user with the requested username already exists."""


class InvalidFriendOperation(FriendGraphError):
    """A friend request or acceptance that the graph state does not allow."""


class InvalidTokenError(FriendGraphError):
    """An access token that is malformed, expired or badly signed."""
