"""
Court assignment engine.
Decides which idle courts receive a new match and which four players fill each.

Pure computation: no database access. Fairness governs *who* plays (fewest
games first), randomness governs *which side* they play on.
"""

import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from courtqueue.services.errors import InsufficientPlayersError, NoIdleCourtsError
from courtqueue.utils.constants import PLAYERS_PER_MATCH, PLAYERS_PER_TEAM

_default_rng = random.SystemRandom()


# ============================================================================
# Inputs and outputs
# ============================================================================

@dataclass(frozen=True)
class PlayerState:
    """Roster entry as read from the store."""

    id: int
    name: str = ""
    games_played: int = 0
    is_waiting: bool = True
    category: Optional[str] = None


@dataclass(frozen=True)
class ActiveMatch:
    """A match currently occupying a court."""

    id: int
    court_number: int
    team1: Tuple[int, int]
    team2: Tuple[int, int]

    @property
    def player_ids(self) -> Tuple[int, ...]:
        return tuple(self.team1) + tuple(self.team2)


@dataclass(frozen=True)
class CourtAssignment:
    """A new match to create: court plus two ordered teams of player ids."""

    court_number: int
    team1: Tuple[int, int]
    team2: Tuple[int, int]

    @property
    def player_ids(self) -> Tuple[int, ...]:
        return tuple(self.team1) + tuple(self.team2)


# ============================================================================
# Court and player selection
# ============================================================================

def occupied_courts(active_matches: Iterable[ActiveMatch]) -> Set[int]:
    """Court numbers referenced by an active match."""
    return {m.court_number for m in active_matches}


def idle_courts(active_matches: Iterable[ActiveMatch], court_count: int) -> List[int]:
    """Courts in 1..court_count with no active match, ascending."""
    occupied = occupied_courts(active_matches)
    return [court for court in range(1, court_count + 1) if court not in occupied]


def playing_player_ids(active_matches: Iterable[ActiveMatch]) -> Set[int]:
    """Ids of every player referenced by an active match."""
    ids: Set[int] = set()
    for match in active_matches:
        ids.update(match.player_ids)
    return ids


def is_eligible(player: PlayerState, playing_ids: Set[int]) -> bool:
    """
    A player may be placed on court iff they are not already on one and their
    waiting flag is set. The waiting flag is authoritative: it is cleared when a
    player is placed or benched and reset when their match completes.
    """
    return player.id not in playing_ids and bool(player.is_waiting)


def eligible_players(
    players: Iterable[PlayerState], active_matches: Iterable[ActiveMatch]
) -> List[PlayerState]:
    """Players that can be placed on a court right now, in roster order."""
    playing = playing_player_ids(active_matches)
    return [p for p in players if is_eligible(p, playing)]


def fairness_order(
    players: Sequence[PlayerState], rng: Optional[random.Random] = None
) -> List[PlayerState]:
    """
    Order players by games played, fewest first.

    Ties are broken uniformly at random: the list is shuffled before a stable
    sort, so no roster position is favoured round after round.
    """
    rng = rng or _default_rng
    shuffled = list(players)
    rng.shuffle(shuffled)
    return sorted(shuffled, key=lambda p: p.games_played or 0)


def split_teams(
    four: Sequence[PlayerState], rng: Optional[random.Random] = None
) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """Randomly permute four players into (team1, team2)."""
    rng = rng or _default_rng
    ids = [p.id for p in four]
    rng.shuffle(ids)
    return (ids[0], ids[1]), (ids[PLAYERS_PER_TEAM], ids[PLAYERS_PER_TEAM + 1])


# ============================================================================
# Entry point
# ============================================================================

def assign_courts(
    players: Sequence[PlayerState],
    active_matches: Sequence[ActiveMatch],
    court_count: int,
    rng: Optional[random.Random] = None,
) -> List[CourtAssignment]:
    """
    Compute the full set of new matches for one "generate" round.

    Args:
        players: Every player in the session
        active_matches: Matches currently on court
        court_count: Number of courts configured for the session
        rng: Random source for tie-breaks and team split (injectable for tests)

    Returns:
        One CourtAssignment per idle court that could be filled, in ascending
        court order. Idle courts left over when players run out stay empty.

    Raises:
        NoIdleCourtsError: Every court in 1..court_count is occupied
        InsufficientPlayersError: Fewer than four eligible players
    """
    rng = rng or _default_rng

    courts = idle_courts(active_matches, court_count)
    if not courts:
        raise NoIdleCourtsError(court_count)

    eligible = eligible_players(players, active_matches)
    if len(eligible) < PLAYERS_PER_MATCH:
        raise InsufficientPlayersError(len(eligible))

    queue = fairness_order(eligible, rng)

    assignments: List[CourtAssignment] = []
    cursor = 0
    for court_number in courts:
        if len(queue) - cursor < PLAYERS_PER_MATCH:
            break
        four = queue[cursor:cursor + PLAYERS_PER_MATCH]
        cursor += PLAYERS_PER_MATCH
        team1, team2 = split_teams(four, rng)
        assignments.append(CourtAssignment(court_number=court_number, team1=team1, team2=team2))

    return assignments
