"""
Tests for data_service CRUD operations.
Covers sessions, court configuration, players and the saved-player pool.
"""
import pytest
from sqlalchemy import select

from courtqueue.database.models import Match, SavedPlayer
from courtqueue.services import data_service
from courtqueue.services.errors import PlayerInMatchError


async def _put_on_court(db_session, session_id, player_ids, court_number=1):
    match = Match(
        session_id=session_id,
        court_number=court_number,
        team1_player1_id=player_ids[0],
        team1_player2_id=player_ids[1],
        team2_player1_id=player_ids[2],
        team2_player2_id=player_ids[3],
    )
    db_session.add(match)
    await db_session.commit()
    return match.id


# ============================================================================
# Session CRUD Tests
# ============================================================================

@pytest.mark.asyncio
async def test_create_session(db_session, test_agent):
    """Test creating a session with a generated booking slug."""
    result = await data_service.create_session(
        db_session,
        agent_id=test_agent.id,
        agent_name="  Sam  ",
        court_name="Riverside Badminton Club",
        date="10/19/2026",
        start_time="7:00",
        end_time="21:30",
    )

    assert result["id"] is not None
    assert result["agent_name"] == "Sam"
    assert result["date"] == "2026-10-19"
    assert result["start_time"] == "07:00"
    assert result["court_count"] == 1
    assert result["court_labels"] == ["1"]
    assert len(result["shareable_slug"]) == 8
    assert result["player_count"] == 0


@pytest.mark.asyncio
async def test_create_session_rejects_bad_times(db_session, test_agent):
    with pytest.raises(ValueError):
        await data_service.create_session(
            db_session,
            agent_id=test_agent.id,
            agent_name="Sam",
            court_name="Hall",
            date="2026-10-19",
            start_time="20:00",
            end_time="18:00",
        )


@pytest.mark.asyncio
async def test_create_session_rejects_bad_court_count(db_session, test_agent):
    with pytest.raises(ValueError):
        await data_service.create_session(
            db_session,
            agent_id=test_agent.id,
            agent_name="Sam",
            court_name="Hall",
            date="2026-10-19",
            court_count=0,
        )


@pytest.mark.asyncio
async def test_list_sessions_with_player_count(db_session, test_agent, test_session, add_players):
    await add_players(test_session.id, [0, 0, 0])
    await data_service.create_session(
        db_session, agent_id=test_agent.id, agent_name="Sam", court_name="Annex", date="2026-10-20"
    )

    sessions = await data_service.list_sessions(db_session, agent_id=test_agent.id)

    assert len(sessions) == 2
    counts = {s["court_name"]: s["player_count"] for s in sessions}
    assert counts == {"Downtown Sports Hall": 3, "Annex": 0}
    # Newest first
    assert sessions[0]["court_name"] == "Annex"


@pytest.mark.asyncio
async def test_get_session_by_slug(db_session, test_session):
    result = await data_service.get_session_by_slug(db_session, "ABCD1234")
    assert result["id"] == test_session.id
    assert result["player_count"] == 0

    assert await data_service.get_session_by_slug(db_session, "missing1") is None


@pytest.mark.asyncio
async def test_update_session(db_session, test_session):
    result = await data_service.update_session(
        db_session, test_session.id, court_name="New Hall", end_time="21:00"
    )
    assert result["court_name"] == "New Hall"
    assert result["end_time"] == "21:00"
    assert result["start_time"] == "18:00"

    assert await data_service.update_session(db_session, 999, court_name="x") is None


@pytest.mark.asyncio
async def test_delete_session_cascades(db_session, test_session, add_players):
    session_id = test_session.id
    ids = [p.id for p in await add_players(session_id, [0, 0, 0, 0])]
    await _put_on_court(db_session, session_id, ids)

    assert await data_service.delete_session(db_session, session_id) is True
    assert await data_service.get_session(db_session, session_id) is None
    assert await data_service.list_players(db_session, session_id) == []
    assert await data_service.delete_session(db_session, session_id) is False


# ============================================================================
# Court configuration
# ============================================================================

@pytest.mark.asyncio
async def test_set_court_count_resets_labels(db_session, test_session):
    await data_service.set_court_labels(db_session, test_session.id, ["A", "B"])

    result = await data_service.set_court_count(db_session, test_session.id, 3)

    assert result["court_count"] == 3
    assert result["court_labels"] == ["1", "2", "3"]


@pytest.mark.asyncio
async def test_set_court_count_validates(db_session, test_session):
    with pytest.raises(ValueError):
        await data_service.set_court_count(db_session, test_session.id, 0)


@pytest.mark.asyncio
async def test_set_court_labels_sets_count(db_session, test_session):
    result = await data_service.set_court_labels(
        db_session, test_session.id, ["Center", " ", "Back, left"]
    )
    assert result["court_count"] == 3
    assert result["court_labels"] == ["Center", "2", "Back  left"]


# ============================================================================
# Player CRUD Tests
# ============================================================================

@pytest.mark.asyncio
async def test_add_player(db_session, test_session):
    player = await data_service.add_player(db_session, test_session.id, "  Alex   Kim ", "expert")

    assert player["name"] == "Alex Kim"
    assert player["category"] == "Expert"
    assert player["games_played"] == 0
    assert player["is_waiting"] is True


@pytest.mark.asyncio
async def test_add_player_default_category(db_session, test_session):
    player = await data_service.add_player(db_session, test_session.id, "Jo")
    assert player["category"] == "Beginner"


@pytest.mark.asyncio
async def test_add_player_duplicate_name(db_session, test_session):
    await data_service.add_player(db_session, test_session.id, "Alex")
    with pytest.raises(ValueError, match="Player name already taken"):
        await data_service.add_player(db_session, test_session.id, "alex")


@pytest.mark.asyncio
async def test_add_player_invalid(db_session, test_session):
    with pytest.raises(ValueError):
        await data_service.add_player(db_session, test_session.id, "   ")
    with pytest.raises(ValueError):
        await data_service.add_player(db_session, test_session.id, "Alex", "Pro")


@pytest.mark.asyncio
async def test_list_players_flags_playing(db_session, test_session, add_players):
    session_id = test_session.id
    ids = [p.id for p in await add_players(session_id, [0] * 5)]
    await _put_on_court(db_session, session_id, ids[:4])

    players = await data_service.list_players(db_session, session_id)

    assert [p["id"] for p in players] == ids
    assert [p["is_playing"] for p in players] == [True, True, True, True, False]


@pytest.mark.asyncio
async def test_update_player_details(db_session, test_session, add_players):
    ids = [p.id for p in await add_players(test_session.id, [0, 0])]

    result = await data_service.update_player_details(
        db_session, ids[0], name="Robin", category="Intermediate"
    )
    assert result["name"] == "Robin"
    assert result["category"] == "Intermediate"

    with pytest.raises(ValueError):
        await data_service.update_player_details(db_session, ids[1], name="robin")


@pytest.mark.asyncio
async def test_bench_and_unbench_player(db_session, test_session, add_players):
    (player,) = await add_players(test_session.id, [0])
    player_id = player.id

    benched = await data_service.set_player_waiting(db_session, player_id, False)
    assert benched["is_waiting"] is False

    back = await data_service.set_player_waiting(db_session, player_id, True)
    assert back["is_waiting"] is True


@pytest.mark.asyncio
async def test_cannot_bench_or_delete_playing_player(db_session, test_session, add_players):
    session_id = test_session.id
    ids = [p.id for p in await add_players(session_id, [0] * 4)]
    await _put_on_court(db_session, session_id, ids)

    with pytest.raises(PlayerInMatchError):
        await data_service.set_player_waiting(db_session, ids[0], True)
    with pytest.raises(PlayerInMatchError):
        await data_service.delete_player(db_session, ids[0])

    assert len(await data_service.list_players(db_session, session_id)) == 4


@pytest.mark.asyncio
async def test_delete_player(db_session, test_session, add_players):
    (player,) = await add_players(test_session.id, [0])
    player_id = player.id

    assert await data_service.delete_player(db_session, player_id) is True
    assert await data_service.get_player(db_session, player_id) is None
    assert await data_service.delete_player(db_session, player_id) is False


# ============================================================================
# Saved-player pool
# ============================================================================

@pytest.mark.asyncio
async def test_save_and_list_pool(db_session, test_agent):
    agent_id = test_agent.id
    await data_service.save_player_to_pool(db_session, agent_id, "Zoe", "Expert")
    await data_service.save_player_to_pool(db_session, agent_id, "Ann")

    pool = await data_service.list_saved_players(db_session, agent_id)
    assert [p["name"] for p in pool] == ["Ann", "Zoe"]

    with pytest.raises(ValueError):
        await data_service.save_player_to_pool(db_session, agent_id, "zoe")


@pytest.mark.asyncio
async def test_delete_saved_player(db_session, test_agent):
    agent_id = test_agent.id
    saved = await data_service.save_player_to_pool(db_session, agent_id, "Ann")

    assert await data_service.delete_saved_player(db_session, agent_id, saved["id"]) is True
    assert await data_service.delete_saved_player(db_session, agent_id, saved["id"]) is False


@pytest.mark.asyncio
async def test_save_session_players_to_pool(db_session, test_agent, test_session, add_players):
    agent_id = test_agent.id
    await add_players(test_session.id, [0, 0, 0])
    await data_service.save_player_to_pool(db_session, agent_id, "P2")

    result = await data_service.save_session_players_to_pool(db_session, agent_id, test_session.id)

    assert result == {"added": 2, "skipped": 1}
    rows = await db_session.execute(select(SavedPlayer.name).where(SavedPlayer.agent_id == agent_id))
    assert sorted(rows.scalars().all()) == ["P1", "P2", "P3"]


@pytest.mark.asyncio
async def test_import_pool_into_session(db_session, test_agent, test_session, add_players):
    agent_id = test_agent.id
    session_id = test_session.id
    await add_players(session_id, [3])  # P1 already present
    for name in ["P1", "Casey", "Dana"]:
        await data_service.save_player_to_pool(db_session, agent_id, name, "Intermediate")

    result = await data_service.import_saved_players(db_session, agent_id, session_id)

    assert result["skipped"] == 1
    assert [p["name"] for p in result["added"]] == ["Casey", "Dana"]
    assert all(p["is_waiting"] and p["games_played"] == 0 for p in result["added"])
    assert len(await data_service.list_players(db_session, session_id)) == 3


@pytest.mark.asyncio
async def test_import_selected_saved_players(db_session, test_agent, test_session):
    agent_id = test_agent.id
    casey = await data_service.save_player_to_pool(db_session, agent_id, "Casey")
    await data_service.save_player_to_pool(db_session, agent_id, "Dana")

    result = await data_service.import_saved_players(
        db_session, agent_id, test_session.id, [casey["id"]]
    )

    assert [p["name"] for p in result["added"]] == ["Casey"]
    assert result["skipped"] == 0
