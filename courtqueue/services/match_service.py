"""
Match lifecycle service: generating matches onto idle courts and completing them.

Both operations read fresh state from the store, decide what to write, stage
the writes in a MatchWorkUnit and apply it. Writes are committed one batch at a
time (one batch per court on generation, one batch on completion), so a
failure part way through leaves earlier courts valid and the caller reloads
and re-invokes.
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

from courtqueue.services.court_assignment import (
    ActiveMatch,
    CourtAssignment,
    PlayerState,
    assign_courts,
)
from courtqueue.services.errors import (
    InsufficientPlayersError,
    MatchNotFoundError,
    NoIdleCourtsError,
    RotationError,
    StoreFailureError,
)
from courtqueue.services.roster_store import RosterStore

logger = logging.getLogger(__name__)

Batch = Callable[[RosterStore], Awaitable[Any]]


# ============================================================================
# Store record conversion
# ============================================================================

def to_player_state(player: Dict) -> PlayerState:
    """Build an engine PlayerState from a store player dict."""
    return PlayerState(
        id=player["id"],
        name=player.get("name") or "",
        games_played=player.get("games_played") or 0,
        # A missing flag means the player has never been placed or benched
        is_waiting=player.get("is_waiting") is not False,
        category=player.get("category"),
    )


def _team_ids(team: List[Optional[Dict]]) -> Tuple[int, ...]:
    return tuple(p["id"] for p in team if p)


def to_active_match(match: Dict) -> ActiveMatch:
    """Build an engine ActiveMatch from a store match dict."""
    return ActiveMatch(
        id=match["id"],
        court_number=match["court_number"],
        team1=_team_ids(match["team1"]),
        team2=_team_ids(match["team2"]),
    )


# ============================================================================
# Unit of work
# ============================================================================

class MatchWorkUnit:
    """
    Ordered batches of store writes, committed one batch at a time.

    apply() can be called again after a StoreFailureError: it resumes at the
    first batch that did not commit. Batches stage absolute values, so
    re-running a rolled back batch is safe.
    """

    def __init__(self, store: RosterStore):
        self.store = store
        self._batches: List[Tuple[str, Batch]] = []
        self.results: List[Any] = []

    def stage(self, label: str, batch: Batch) -> None:
        """Queue a batch. label is used in logs and error messages."""
        self._batches.append((label, batch))

    @property
    def pending(self) -> int:
        """Number of staged batches not yet committed."""
        return len(self._batches) - len(self.results)

    async def apply(self) -> List[Any]:
        """
        Run every pending batch in order, committing after each.

        Returns:
            One result per batch, in staging order

        Raises:
            RotationError: A batch detected a precondition failure (rolled back)
            StoreFailureError: A store write or commit failed (rolled back);
                carries the results of the batches that did commit
        """
        while self.pending:
            label, batch = self._batches[len(self.results)]
            try:
                result = await batch(self.store)
                await self.store.commit()
            except RotationError:
                await self.store.rollback()
                raise
            except Exception as e:
                await self.store.rollback()
                logger.error(f"Store failure while applying {label}: {e}", exc_info=True)
                raise StoreFailureError(
                    f"Failed while applying {label}: {e}. Reload and try again.",
                    applied=list(self.results),
                ) from e
            self.results.append(result)
        return self.results


# ============================================================================
# Per-session serialization
# ============================================================================

class SessionLockRegistry:
    """One asyncio.Lock per session so generate/complete calls do not interleave."""

    def __init__(self):
        self._locks: Dict[int, asyncio.Lock] = {}

    def lock_for(self, session_id: int) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    @asynccontextmanager
    async def hold(self, session_id: int) -> AsyncIterator[None]:
        async with self.lock_for(session_id):
            yield

    def discard(self, session_id: int) -> None:
        """Forget a session's lock (e.g. after the session is deleted)."""
        self._locks.pop(session_id, None)


session_locks = SessionLockRegistry()


# ============================================================================
# Batches
# ============================================================================

def _place_on_court(session_id: int, assignment: CourtAssignment) -> Batch:
    async def batch(store: RosterStore) -> Dict:
        for player_id in assignment.player_ids:
            await store.update_player(player_id, is_waiting=False)
        return await store.create_match(
            session_id, assignment.court_number, assignment.team1, assignment.team2
        )

    return batch


def _release_court(match: Dict) -> Batch:
    async def batch(store: RosterStore) -> List[Dict]:
        # Deleting first makes a repeated completion fail before any player is touched
        if not await store.delete_match(match["id"]):
            raise MatchNotFoundError(match["id"])
        updated = []
        for player in match["team1"] + match["team2"]:
            if not player:
                continue
            result = await store.update_player(
                player["id"],
                games_played=(player.get("games_played") or 0) + 1,
                is_waiting=True,
            )
            if result:
                updated.append(result)
        return updated

    return batch


# ============================================================================
# Operations
# ============================================================================

async def generate_matches(
    store: RosterStore,
    session_id: int,
    rng: Optional[random.Random] = None,
    locks: SessionLockRegistry = session_locks,
) -> List[Dict]:
    """
    Fill every idle court with a new match.

    Args:
        store: Roster store
        session_id: Session to generate matches for
        rng: Random source for tie-breaks and team split
        locks: Per-session lock registry

    Returns:
        The newly created matches, in ascending court order

    Raises:
        ValueError: Session not found
        NoIdleCourtsError: All courts occupied
        InsufficientPlayersError: Fewer than four eligible players
        StoreFailureError: A write failed; earlier courts stay assigned
    """
    async with locks.hold(session_id):
        court_count = await store.get_court_count(session_id)
        if court_count is None:
            raise ValueError(f"Session {session_id} not found")

        players = [to_player_state(p) for p in await store.list_players(session_id)]
        active = [to_active_match(m) for m in await store.list_active_matches(session_id)]

        try:
            assignments = assign_courts(players, active, court_count, rng)
        except (NoIdleCourtsError, InsufficientPlayersError) as e:
            logger.warning(f"Session {session_id}: cannot generate matches: {e}")
            raise

        unit = MatchWorkUnit(store)
        for assignment in assignments:
            unit.stage(f"court {assignment.court_number}", _place_on_court(session_id, assignment))
        created = await unit.apply()

        logger.info(
            f"Session {session_id}: generated {len(created)} match(es) on courts "
            f"{[m['court_number'] for m in created]}"
        )
        return created


async def complete_match(
    store: RosterStore,
    match_id: int,
    locks: SessionLockRegistry = session_locks,
) -> List[Dict]:
    """
    Complete a match: each of its players gains one game and returns to the
    waiting pool, and the match is deleted, freeing its court.

    Returns:
        The updated players

    Raises:
        MatchNotFoundError: The match does not exist (e.g. already completed)
        StoreFailureError: A write failed; nothing was committed
    """
    match = await store.get_match(match_id)
    if match is None:
        raise MatchNotFoundError(match_id)

    async with locks.hold(match["session_id"]):
        # Re-read under the lock; a concurrent completion may have won
        match = await store.get_match(match_id)
        if match is None:
            raise MatchNotFoundError(match_id)

        unit = MatchWorkUnit(store)
        unit.stage(f"match {match_id}", _release_court(match))
        (updated,) = await unit.apply()

    logger.info(
        f"Session {match['session_id']}: completed match {match_id} on court "
        f"{match['court_number']}"
    )
    return updated
