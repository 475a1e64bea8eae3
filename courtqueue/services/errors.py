"""
Exceptions raised by the match generation and completion services.

Precondition errors leave all state untouched. StoreFailureError means some
writes may already have been committed; callers reload and re-invoke.
"""

from typing import List, Optional


class RotationError(Exception):
    """Base class for court rotation failures."""


class NoIdleCourtsError(RotationError):
    """Every configured court already has an active match."""

    def __init__(self, court_count: int):
        self.court_count = court_count
        super().__init__("All courts are occupied. Complete a match first.")


class InsufficientPlayersError(RotationError):
    """Fewer than four eligible players are waiting."""

    def __init__(self, count: int):
        self.count = count
        super().__init__(
            f"Need at least 4 waiting players to generate a match. Currently have {count}."
        )


class MatchNotFoundError(RotationError):
    """The match id does not resolve to an active match."""

    def __init__(self, match_id: int):
        self.match_id = match_id
        super().__init__(f"Match {match_id} not found")


class PlayerInMatchError(RotationError):
    """The player is on court and cannot be removed or benched."""

    def __init__(self, player_id: int):
        self.player_id = player_id
        super().__init__(f"Player {player_id} is currently playing. Complete their match first.")


class StoreFailureError(RotationError):
    """
    A store write failed part way through an operation.

    Attributes:
        applied: Results of the write batches committed before the failure
            (for generation, the matches that were created)
    """

    def __init__(self, message: str, applied: Optional[List] = None):
        self.applied = applied or []
        super().__init__(message)
