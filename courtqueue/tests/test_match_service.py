"""
Tests for match generation and completion.

Most tests run against the SQLAlchemy store on SQLite. Concurrency and
failure injection use a small in-memory RosterStore.
"""
import asyncio
import copy
import random

import pytest
import pytest_asyncio
from sqlalchemy import select

from courtqueue.database.models import Match, Player
from courtqueue.services import match_service
from courtqueue.services.errors import (
    InsufficientPlayersError,
    MatchNotFoundError,
    NoIdleCourtsError,
    StoreFailureError,
)
from courtqueue.services.match_service import MatchWorkUnit, SessionLockRegistry
from courtqueue.services.roster_store import RosterStore, SqlRosterStore


class InMemoryStore(RosterStore):
    """Single-session store whose commit/rollback snapshot the whole state."""

    SESSION_ID = 1

    def __init__(self, games_played, court_count=1):
        self.court_count = court_count
        self.players = {
            i: {"id": i, "name": f"P{i}", "games_played": g, "is_waiting": True}
            for i, g in enumerate(games_played, start=1)
        }
        self.matches = {}
        self.next_match_id = 1
        self.fail_on_create = set()
        self.commits = 0
        self._snapshot = self._state()

    def _state(self):
        return copy.deepcopy((self.players, self.matches, self.next_match_id))

    def _match_dict(self, match):
        players = [dict(self.players[pid]) for pid in match["player_ids"]]
        return {
            "id": match["id"],
            "session_id": self.SESSION_ID,
            "court_number": match["court_number"],
            "team1": players[:2],
            "team2": players[2:],
        }

    async def get_court_count(self, session_id):
        await asyncio.sleep(0)
        return self.court_count if session_id == self.SESSION_ID else None

    async def list_players(self, session_id):
        await asyncio.sleep(0)
        return [dict(p) for p in self.players.values()]

    async def list_active_matches(self, session_id):
        await asyncio.sleep(0)
        return [self._match_dict(m) for m in self.matches.values()]

    async def get_match(self, match_id):
        await asyncio.sleep(0)
        match = self.matches.get(match_id)
        return self._match_dict(match) if match else None

    async def create_match(self, session_id, court_number, team1_player_ids, team2_player_ids):
        await asyncio.sleep(0)
        if court_number in self.fail_on_create:
            raise ConnectionError("connection reset")
        if any(m["court_number"] == court_number for m in self.matches.values()):
            raise ValueError(f"Court {court_number} already has a match")
        match = {
            "id": self.next_match_id,
            "court_number": court_number,
            "player_ids": list(team1_player_ids) + list(team2_player_ids),
        }
        self.matches[match["id"]] = match
        self.next_match_id += 1
        return self._match_dict(match)

    async def delete_match(self, match_id):
        await asyncio.sleep(0)
        return self.matches.pop(match_id, None) is not None

    async def update_player(self, player_id, games_played=None, is_waiting=None):
        await asyncio.sleep(0)
        player = self.players[player_id]
        if games_played is not None:
            player["games_played"] = games_played
        if is_waiting is not None:
            player["is_waiting"] = is_waiting
        return dict(player)

    async def commit(self):
        self.commits += 1
        self._snapshot = self._state()

    async def rollback(self):
        self.players, self.matches, self.next_match_id = copy.deepcopy(self._snapshot)


@pytest.fixture
def locks():
    """A lock registry private to the test."""
    return SessionLockRegistry()


@pytest_asyncio.fixture
async def store(db_session):
    return SqlRosterStore(db_session)


async def _players_by_id(db_session, session_id):
    result = await db_session.execute(
        select(Player)
        .where(Player.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    return {p.id: p for p in result.scalars().all()}


async def _match_count(db_session, session_id):
    result = await db_session.execute(select(Match).where(Match.session_id == session_id))
    return len(result.scalars().all())


# ============================================================================
# generate_matches
# ============================================================================

@pytest.mark.asyncio
async def test_generate_four_players_one_court(db_session, store, test_session, add_players, locks):
    """Four waiting players fill the only court."""
    session_id = test_session.id
    ids = [p.id for p in await add_players(session_id, [0, 0, 0, 0])]

    created = await match_service.generate_matches(
        store, session_id, rng=random.Random(1), locks=locks
    )

    assert len(created) == 1
    match = created[0]
    assert match["court_number"] == 1
    assert match["court_label"] == "1"
    assert sorted(p["id"] for p in match["team1"] + match["team2"]) == sorted(ids)

    players = await _players_by_id(db_session, session_id)
    for pid in ids:
        assert players[pid].games_played == 0
        assert players[pid].is_waiting is False


@pytest.mark.asyncio
async def test_generate_three_players_insufficient(db_session, store, test_session, add_players, locks):
    """Three waiting players are not enough; nothing is written."""
    session_id = test_session.id
    await add_players(session_id, [0, 0, 0])

    with pytest.raises(InsufficientPlayersError) as exc_info:
        await match_service.generate_matches(store, session_id, locks=locks)

    assert exc_info.value.count == 3
    assert await _match_count(db_session, session_id) == 0
    players = await _players_by_id(db_session, session_id)
    assert all(p.is_waiting for p in players.values())


@pytest.mark.asyncio
async def test_generate_picks_fewest_games(db_session, store, test_session, add_players, locks):
    """With games played [0,0,1,1,2] the player on 2 keeps waiting."""
    session_id = test_session.id
    players = await add_players(session_id, [0, 0, 1, 1, 2])
    ids = [p.id for p in players]

    (match,) = await match_service.generate_matches(
        store, session_id, rng=random.Random(3), locks=locks
    )

    assert sorted(p["id"] for p in match["team1"] + match["team2"]) == sorted(ids[:4])
    current = await _players_by_id(db_session, session_id)
    assert current[ids[4]].is_waiting is True


@pytest.mark.asyncio
async def test_generate_all_courts_occupied(db_session, store, test_session, add_players, locks):
    """Two courts, both busy: NoIdleCourtsError even with players waiting."""
    session_id = test_session.id
    test_session.court_count = 2
    await db_session.commit()
    await add_players(session_id, [0] * 10)

    created = await match_service.generate_matches(store, session_id, locks=locks)
    assert [m["court_number"] for m in created] == [1, 2]

    with pytest.raises(NoIdleCourtsError):
        await match_service.generate_matches(store, session_id, locks=locks)
    assert await _match_count(db_session, session_id) == 2


@pytest.mark.asyncio
async def test_generate_unknown_session(store, locks):
    with pytest.raises(ValueError):
        await match_service.generate_matches(store, 999, locks=locks)


@pytest.mark.asyncio
async def test_generate_skips_benched_players(db_session, store, test_session, add_players, locks):
    session_id = test_session.id
    players = await add_players(session_id, [0, 0, 0, 0, 5])
    benched_id = players[0].id
    players[0].is_waiting = False
    await db_session.commit()

    (match,) = await match_service.generate_matches(store, session_id, locks=locks)

    assert benched_id not in [p["id"] for p in match["team1"] + match["team2"]]


@pytest.mark.asyncio
async def test_assigned_players_excluded_until_completed(
    db_session, store, test_session, add_players, locks
):
    """Players on court are not picked again until their match completes."""
    session_id = test_session.id
    test_session.court_count = 2
    await db_session.commit()
    await add_players(session_id, [0] * 6)

    (first,) = await match_service.generate_matches(store, session_id, locks=locks)
    on_court = {p["id"] for p in first["team1"] + first["team2"]}

    with pytest.raises(InsufficientPlayersError) as exc_info:
        await match_service.generate_matches(store, session_id, locks=locks)
    assert exc_info.value.count == 2

    await match_service.complete_match(store, first["id"], locks=locks)
    (second,) = await match_service.generate_matches(store, session_id, locks=locks)

    # The two who sat out have 0 games and must be picked
    second_ids = {p["id"] for p in second["team1"] + second["team2"]}
    all_ids = set((await _players_by_id(db_session, session_id)).keys())
    assert (all_ids - on_court) <= second_ids


# ============================================================================
# complete_match
# ============================================================================

@pytest.mark.asyncio
async def test_complete_match_releases_players(db_session, store, test_session, add_players, locks):
    """Completion adds one game to each player, re-queues them and frees the court."""
    session_id = test_session.id
    ids = [p.id for p in await add_players(session_id, [2, 2, 2, 2])]
    (match,) = await match_service.generate_matches(store, session_id, locks=locks)

    updated = await match_service.complete_match(store, match["id"], locks=locks)

    assert sorted(p["id"] for p in updated) == sorted(ids)
    assert all(p["games_played"] == 3 and p["is_waiting"] for p in updated)
    assert await store.list_active_matches(session_id) == []

    players = await _players_by_id(db_session, session_id)
    for pid in ids:
        assert players[pid].games_played == 3
        assert players[pid].is_waiting is True

    (again,) = await match_service.generate_matches(store, session_id, locks=locks)
    assert again["court_number"] == 1


@pytest.mark.asyncio
async def test_complete_match_twice(db_session, store, test_session, add_players, locks):
    """A second completion of the same match fails and changes nothing."""
    session_id = test_session.id
    ids = [p.id for p in await add_players(session_id, [0, 0, 0, 0])]
    (match,) = await match_service.generate_matches(store, session_id, locks=locks)
    await match_service.complete_match(store, match["id"], locks=locks)

    with pytest.raises(MatchNotFoundError) as exc_info:
        await match_service.complete_match(store, match["id"], locks=locks)

    assert exc_info.value.match_id == match["id"]
    players = await _players_by_id(db_session, session_id)
    assert [players[pid].games_played for pid in ids] == [1, 1, 1, 1]


@pytest.mark.asyncio
async def test_complete_unknown_match(store, locks):
    with pytest.raises(MatchNotFoundError):
        await match_service.complete_match(store, 12345, locks=locks)


# ============================================================================
# Concurrency and failures (in-memory store)
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_generate_fills_court_once(locks):
    """A double tap on generate creates one match, not two on the same court."""
    memory = InMemoryStore([0] * 8, court_count=1)

    results = await asyncio.gather(
        match_service.generate_matches(memory, 1, locks=locks),
        match_service.generate_matches(memory, 1, locks=locks),
        return_exceptions=True,
    )

    created = [r for r in results if isinstance(r, list)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(created) == 1
    assert len(errors) == 1 and isinstance(errors[0], NoIdleCourtsError)
    assert len(memory.matches) == 1


@pytest.mark.asyncio
async def test_concurrent_complete_increments_once(locks):
    memory = InMemoryStore([0] * 4)
    (match,) = await match_service.generate_matches(memory, 1, locks=locks)

    results = await asyncio.gather(
        match_service.complete_match(memory, match["id"], locks=locks),
        match_service.complete_match(memory, match["id"], locks=locks),
        return_exceptions=True,
    )

    assert sum(isinstance(r, MatchNotFoundError) for r in results) == 1
    assert [p["games_played"] for p in memory.players.values()] == [1, 1, 1, 1]


@pytest.mark.asyncio
async def test_partial_generate_failure_keeps_earlier_courts(locks):
    """A failure on court 2 leaves court 1 committed and court 2's players waiting."""
    memory = InMemoryStore([0] * 8, court_count=2)
    memory.fail_on_create.add(2)

    with pytest.raises(StoreFailureError) as exc_info:
        await match_service.generate_matches(memory, 1, locks=locks)

    assert [m["court_number"] for m in exc_info.value.applied] == [1]
    assert [m["court_number"] for m in memory.matches.values()] == [1]
    on_court = set(next(iter(memory.matches.values()))["player_ids"])
    for pid, player in memory.players.items():
        assert player["is_waiting"] is (pid not in on_court)

    # Reload and re-invoke fills the remaining court
    memory.fail_on_create.clear()
    (created,) = await match_service.generate_matches(memory, 1, locks=locks)
    assert created["court_number"] == 2


@pytest.mark.asyncio
async def test_work_unit_resumes_after_failure():
    memory = InMemoryStore([0] * 8, court_count=2)
    calls = []

    def batch(label, fail_first):
        async def run(store):
            calls.append(label)
            if fail_first and calls.count(label) == 1:
                raise ConnectionError("timeout")
            return label
        return run

    unit = MatchWorkUnit(memory)
    unit.stage("one", batch("one", fail_first=False))
    unit.stage("two", batch("two", fail_first=True))

    with pytest.raises(StoreFailureError) as exc_info:
        await unit.apply()
    assert exc_info.value.applied == ["one"]
    assert unit.pending == 1

    assert await unit.apply() == ["one", "two"]
    assert calls == ["one", "two", "two"]
    assert unit.pending == 0
    assert memory.commits == 2


@pytest.mark.asyncio
async def test_complete_failure_rolls_back(locks):
    """A store failure during completion leaves the match and players untouched."""
    memory = InMemoryStore([0] * 4)
    (match,) = await match_service.generate_matches(memory, 1, locks=locks)

    original_update = memory.update_player
    attempts = []

    async def flaky_update(player_id, games_played=None, is_waiting=None):
        attempts.append(player_id)
        if len(attempts) == 3:
            raise ConnectionError("connection reset")
        return await original_update(player_id, games_played=games_played, is_waiting=is_waiting)

    memory.update_player = flaky_update

    with pytest.raises(StoreFailureError):
        await match_service.complete_match(memory, match["id"], locks=locks)

    assert match["id"] in memory.matches
    assert all(p["games_played"] == 0 for p in memory.players.values())
    assert all(p["is_waiting"] is False for p in memory.players.values())
