"""
Data service layer for database operations.
Handles CRUD for sessions, players and the saved-player pool.

Match generation and completion live in match_service; this module only
guards player edits that would break an active match.
"""

from typing import Dict, Iterable, List, Optional, Set
import logging
from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.database.models import Match, Player, PlayerCategory, SavedPlayer, Session
from courtqueue.services.errors import PlayerInMatchError
from courtqueue.services.match_service import session_locks
from courtqueue.services.roster_store import player_to_dict
from courtqueue.utils.constants import (
    DEFAULT_COURT_COUNT,
    MAX_COURT_COUNT,
    MAX_PLAYER_NAME_LENGTH,
)
from courtqueue.utils.courts import parse_court_labels, serialize_court_labels
from courtqueue.utils.datetime_utils import (
    isoformat_or_none,
    normalize_clock_time,
    normalize_session_date,
)
from courtqueue.utils.slugs import generate_slug

logger = logging.getLogger(__name__)

#
# Helper functions
#

def normalize_player_name(name: str) -> str:
    """
    Trim a player name and collapse inner whitespace.

    Raises:
        ValueError: If the name is empty or too long
    """
    cleaned = " ".join((name or "").split())
    if not cleaned:
        raise ValueError("Player name is required")
    if len(cleaned) > MAX_PLAYER_NAME_LENGTH:
        raise ValueError(f"Player name must be at most {MAX_PLAYER_NAME_LENGTH} characters")
    return cleaned


def normalize_category(category: Optional[str]) -> str:
    """
    Map a category to its stored value, defaulting to Beginner.

    Raises:
        ValueError: If the category is not Beginner, Intermediate or Expert
    """
    if category is None or category == "":
        return PlayerCategory.BEGINNER.value
    value = category.value if isinstance(category, PlayerCategory) else str(category).strip()
    for member in PlayerCategory:
        if member.value.lower() == value.lower():
            return member.value
    raise ValueError(f"Invalid category '{category}'. Use Beginner, Intermediate or Expert")


def validate_court_count(court_count: int) -> int:
    """
    Raises:
        ValueError: If the court count is not between 1 and MAX_COURT_COUNT
    """
    if not isinstance(court_count, int) or court_count < 1:
        raise ValueError("Court count must be a positive integer")
    if court_count > MAX_COURT_COUNT:
        raise ValueError(f"Court count must be at most {MAX_COURT_COUNT}")
    return court_count


def _session_to_dict(s: Session, player_count: Optional[int] = None) -> Dict:
    data = {
        "id": s.id,
        "agent_id": s.agent_id,
        "agent_name": s.agent_name,
        "court_name": s.court_name,
        "date": s.date,
        "start_time": s.start_time,
        "end_time": s.end_time,
        "location_url": s.location_url,
        "court_count": s.court_count,
        "court_labels": parse_court_labels(s.court_labels, s.court_count),
        "shareable_slug": s.shareable_slug,
        "created_at": isoformat_or_none(s.created_at),
        "updated_at": isoformat_or_none(s.updated_at),
    }
    if player_count is not None:
        data["player_count"] = player_count
    return data


def _saved_player_to_dict(p: SavedPlayer) -> Dict:
    return {
        "id": p.id,
        "agent_id": p.agent_id,
        "name": p.name,
        "category": p.category,
        "created_at": isoformat_or_none(p.created_at),
    }


async def _generate_unique_slug(session: AsyncSession) -> str:
    """Generate a booking slug not used by any other session."""
    while True:
        slug = generate_slug()
        result = await session.execute(
            select(Session.id).where(Session.shareable_slug == slug)
        )
        if result.scalar_one_or_none() is None:
            return slug


#
# Sessions
#

async def create_session(
    session: AsyncSession,
    agent_id: int,
    agent_name: str,
    court_name: str,
    date: str,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    location_url: Optional[str] = None,
    court_count: int = DEFAULT_COURT_COUNT,
) -> Dict:
    """
    Create a new session with a fresh shareable booking slug.

    Args:
        session: Database session
        agent_id: Organizer creating the session
        agent_name: Organizer name shown to players
        court_name: Venue name
        date: Session date (YYYY-MM-DD or M/D/YYYY)
        start_time: Optional HH:MM
        end_time: Optional HH:MM
        location_url: Optional map link
        court_count: Number of courts (defaults to 1)

    Returns:
        Session dictionary

    Raises:
        ValueError: If any field is invalid
    """
    if not agent_name or not agent_name.strip():
        raise ValueError("Organizer name is required")
    if not court_name or not court_name.strip():
        raise ValueError("Court name is required")

    start = normalize_clock_time(start_time)
    end = normalize_clock_time(end_time)
    if start and end and end <= start:
        raise ValueError("End time must be after start time")

    new_session = Session(
        agent_id=agent_id,
        agent_name=agent_name.strip(),
        court_name=court_name.strip(),
        date=normalize_session_date(date),
        start_time=start,
        end_time=end,
        location_url=(location_url or "").strip() or None,
        court_count=validate_court_count(court_count),
        shareable_slug=await _generate_unique_slug(session),
    )
    session.add(new_session)
    await session.flush()
    await session.commit()
    await session.refresh(new_session)

    logger.info(f"Agent {agent_id} created session {new_session.id} ({new_session.shareable_slug})")
    return _session_to_dict(new_session, player_count=0)


async def list_sessions(session: AsyncSession, agent_id: Optional[int] = None) -> List[Dict]:
    """Get sessions (optionally for one agent), newest first, with player counts."""
    query = (
        select(Session, func.count(Player.id))
        .outerjoin(Player, Player.session_id == Session.id)
        .group_by(Session.id)
        .order_by(Session.created_at.desc(), Session.id.desc())
    )
    if agent_id is not None:
        query = query.where(Session.agent_id == agent_id)

    result = await session.execute(query)
    return [_session_to_dict(s, player_count=count) for s, count in result.all()]


async def get_session(session: AsyncSession, session_id: int) -> Optional[Dict]:
    """Get a session by ID."""
    result = await session.execute(select(Session).where(Session.id == session_id))
    s = result.scalar_one_or_none()
    return _session_to_dict(s) if s else None


async def get_session_by_slug(session: AsyncSession, slug: str) -> Optional[Dict]:
    """Get a session by its shareable slug, with its player count."""
    result = await session.execute(
        select(Session, func.count(Player.id))
        .outerjoin(Player, Player.session_id == Session.id)
        .where(Session.shareable_slug == slug.strip().lower())
        .group_by(Session.id)
    )
    row = result.first()
    if not row:
        return None
    s, count = row
    return _session_to_dict(s, player_count=count)


async def update_session(
    session: AsyncSession,
    session_id: int,
    agent_name: Optional[str] = None,
    court_name: Optional[str] = None,
    date: Optional[str] = None,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    location_url: Optional[str] = None,
) -> Optional[Dict]:
    """
    Update session metadata. Only non-None fields are changed.

    Returns:
        Updated session dictionary, or None if not found

    Raises:
        ValueError: If any field is invalid
    """
    result = await session.execute(select(Session).where(Session.id == session_id))
    s = result.scalar_one_or_none()
    if not s:
        return None

    if agent_name is not None:
        if not agent_name.strip():
            raise ValueError("Organizer name is required")
        s.agent_name = agent_name.strip()
    if court_name is not None:
        if not court_name.strip():
            raise ValueError("Court name is required")
        s.court_name = court_name.strip()
    if date is not None:
        s.date = normalize_session_date(date)
    if start_time is not None:
        s.start_time = normalize_clock_time(start_time)
    if end_time is not None:
        s.end_time = normalize_clock_time(end_time)
    if location_url is not None:
        s.location_url = location_url.strip() or None
    if s.start_time and s.end_time and s.end_time <= s.start_time:
        raise ValueError("End time must be after start time")

    await session.flush()
    await session.commit()
    await session.refresh(s)
    return _session_to_dict(s)


async def delete_session(session: AsyncSession, session_id: int) -> bool:
    """
    Delete a session together with its players and active matches.

    Returns:
        True if deleted, False if not found
    """
    result = await session.execute(select(Session).where(Session.id == session_id))
    s = result.scalar_one_or_none()
    if not s:
        return False

    # Matches reference players, so they go first
    matches = await session.execute(select(Match).where(Match.session_id == session_id))
    for match in matches.scalars().all():
        await session.delete(match)
    await session.flush()

    players = await session.execute(select(Player).where(Player.session_id == session_id))
    for player in players.scalars().all():
        await session.delete(player)
    await session.flush()

    await session.delete(s)
    await session.commit()
    session_locks.discard(session_id)
    logger.info(f"Deleted session {session_id}")
    return True


async def set_court_count(session: AsyncSession, session_id: int, court_count: int) -> Optional[Dict]:
    """
    Set the number of courts. Custom court labels are reset to 1..court_count.

    Matches already running on a court above the new count stay active until
    completed; only courts 1..court_count receive new matches.

    Raises:
        ValueError: If the count is not a positive integer
    """
    validate_court_count(court_count)
    result = await session.execute(select(Session).where(Session.id == session_id))
    s = result.scalar_one_or_none()
    if not s:
        return None

    s.court_count = court_count
    s.court_labels = None
    await session.flush()
    await session.commit()
    await session.refresh(s)
    return _session_to_dict(s)


async def set_court_labels(session: AsyncSession, session_id: int, labels: List[str]) -> Optional[Dict]:
    """
    Set court display labels. The court count becomes the number of labels.

    Raises:
        ValueError: If no labels are given
    """
    if not labels:
        raise ValueError("At least one court label is required")
    validate_court_count(len(labels))

    result = await session.execute(select(Session).where(Session.id == session_id))
    s = result.scalar_one_or_none()
    if not s:
        return None

    s.court_labels = serialize_court_labels(labels)
    s.court_count = len(labels)
    await session.flush()
    await session.commit()
    await session.refresh(s)
    return _session_to_dict(s)


#
# Players
#

async def _playing_player_ids(session: AsyncSession, session_id: int) -> Set[int]:
    result = await session.execute(
        select(
            Match.team1_player1_id,
            Match.team1_player2_id,
            Match.team2_player1_id,
            Match.team2_player2_id,
        ).where(Match.session_id == session_id)
    )
    return {pid for row in result.all() for pid in row}


async def is_player_in_active_match(session: AsyncSession, player_id: int) -> bool:
    """True if any active match references the player."""
    result = await session.execute(
        select(Match.id)
        .where(
            or_(
                Match.team1_player1_id == player_id,
                Match.team1_player2_id == player_id,
                Match.team2_player1_id == player_id,
                Match.team2_player2_id == player_id,
            )
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_players(session: AsyncSession, session_id: int) -> List[Dict]:
    """Get a session's players in registration order, flagging those on court."""
    result = await session.execute(
        select(Player).where(Player.session_id == session_id).order_by(Player.id)
    )
    playing = await _playing_player_ids(session, session_id)
    return [
        {**player_to_dict(p), "is_playing": p.id in playing}
        for p in result.scalars().all()
    ]


async def get_player(session: AsyncSession, player_id: int) -> Optional[Dict]:
    """Get a player by ID."""
    player = await session.get(Player, player_id)
    return player_to_dict(player) if player else None


async def _name_taken(
    session: AsyncSession, session_id: int, name: str, exclude_player_id: Optional[int] = None
) -> bool:
    query = select(Player.id).where(
        Player.session_id == session_id, func.lower(Player.name) == name.lower()
    )
    if exclude_player_id is not None:
        query = query.where(Player.id != exclude_player_id)
    result = await session.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def add_player(
    session: AsyncSession, session_id: int, name: str, category: Optional[str] = None
) -> Dict:
    """
    Add a player to a session. New players join the waiting pool.

    Raises:
        ValueError: If the name is invalid or already taken in this session
    """
    name = normalize_player_name(name)
    category = normalize_category(category)

    if await _name_taken(session, session_id, name):
        raise ValueError("Player name already taken")

    player = Player(
        session_id=session_id,
        name=name,
        category=category,
        games_played=0,
        is_waiting=True,
    )
    session.add(player)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ValueError("Player name already taken")
    await session.commit()
    await session.refresh(player)
    return player_to_dict(player)


async def update_player_details(
    session: AsyncSession,
    player_id: int,
    name: Optional[str] = None,
    category: Optional[str] = None,
) -> Optional[Dict]:
    """
    Rename a player or change their category.

    Raises:
        ValueError: If the new name is invalid or taken
    """
    player = await session.get(Player, player_id)
    if not player:
        return None

    if name is not None:
        name = normalize_player_name(name)
        if await _name_taken(session, player.session_id, name, exclude_player_id=player_id):
            raise ValueError("Player name already taken")
        player.name = name
    if category is not None:
        player.category = normalize_category(category)

    await session.flush()
    await session.commit()
    await session.refresh(player)
    return player_to_dict(player)


async def set_player_waiting(session: AsyncSession, player_id: int, is_waiting: bool) -> Optional[Dict]:
    """
    Bench a player (is_waiting=False) or return them to the waiting pool.

    Raises:
        PlayerInMatchError: The player is on court; their flag is managed by
            match generation and completion
    """
    player = await session.get(Player, player_id)
    if not player:
        return None
    if await is_player_in_active_match(session, player_id):
        raise PlayerInMatchError(player_id)

    player.is_waiting = is_waiting
    await session.flush()
    await session.commit()
    await session.refresh(player)
    return player_to_dict(player)


async def delete_player(session: AsyncSession, player_id: int) -> bool:
    """
    Remove a player from their session.

    Returns:
        True if deleted, False if not found

    Raises:
        PlayerInMatchError: The player is in an active match
    """
    player = await session.get(Player, player_id)
    if not player:
        return False
    if await is_player_in_active_match(session, player_id):
        raise PlayerInMatchError(player_id)

    await session.delete(player)
    await session.commit()
    return True


#
# Saved-player pool
#

async def list_saved_players(session: AsyncSession, agent_id: int) -> List[Dict]:
    """Get an agent's saved players ordered by name."""
    result = await session.execute(
        select(SavedPlayer)
        .where(SavedPlayer.agent_id == agent_id)
        .order_by(SavedPlayer.name)
    )
    return [_saved_player_to_dict(p) for p in result.scalars().all()]


async def _saved_names(session: AsyncSession, agent_id: int) -> Set[str]:
    result = await session.execute(
        select(SavedPlayer.name).where(SavedPlayer.agent_id == agent_id)
    )
    return {name.lower() for name in result.scalars().all()}


async def save_player_to_pool(
    session: AsyncSession, agent_id: int, name: str, category: Optional[str] = None
) -> Dict:
    """
    Save a player template to the agent's pool.

    Raises:
        ValueError: If the name is invalid or already saved
    """
    name = normalize_player_name(name)
    if name.lower() in await _saved_names(session, agent_id):
        raise ValueError("Player already saved to pool")

    saved = SavedPlayer(agent_id=agent_id, name=name, category=normalize_category(category))
    session.add(saved)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise ValueError("Player already saved to pool")
    await session.commit()
    await session.refresh(saved)
    return _saved_player_to_dict(saved)


async def delete_saved_player(session: AsyncSession, agent_id: int, saved_player_id: int) -> bool:
    """
    Remove a template from the agent's pool.

    Returns:
        True if deleted, False if not found for this agent
    """
    result = await session.execute(
        select(SavedPlayer).where(
            SavedPlayer.id == saved_player_id, SavedPlayer.agent_id == agent_id
        )
    )
    saved = result.scalar_one_or_none()
    if not saved:
        return False
    await session.delete(saved)
    await session.commit()
    return True


async def save_session_players_to_pool(session: AsyncSession, agent_id: int, session_id: int) -> Dict:
    """
    Copy every player of a session into the agent's pool, skipping names
    that are already saved.

    Returns:
        {"added": int, "skipped": int}
    """
    existing = await _saved_names(session, agent_id)
    result = await session.execute(
        select(Player).where(Player.session_id == session_id).order_by(Player.id)
    )

    added = 0
    skipped = 0
    for player in result.scalars().all():
        if player.name.lower() in existing:
            skipped += 1
            continue
        session.add(SavedPlayer(agent_id=agent_id, name=player.name, category=player.category))
        existing.add(player.name.lower())
        added += 1

    await session.flush()
    await session.commit()
    logger.info(f"Agent {agent_id} saved {added} player(s) from session {session_id} to pool")
    return {"added": added, "skipped": skipped}


async def import_saved_players(
    session: AsyncSession,
    agent_id: int,
    session_id: int,
    saved_player_ids: Optional[Iterable[int]] = None,
) -> Dict:
    """
    Add saved players to a session as fresh waiting players.

    Args:
        saved_player_ids: Templates to import; None imports the whole pool

    Returns:
        {"added": [player dicts], "skipped": int} where skipped counts names
        already present in the session
    """
    query = select(SavedPlayer).where(SavedPlayer.agent_id == agent_id).order_by(SavedPlayer.name)
    if saved_player_ids is not None:
        query = query.where(SavedPlayer.id.in_(list(saved_player_ids)))
    result = await session.execute(query)
    templates = result.scalars().all()

    names_result = await session.execute(
        select(Player.name).where(Player.session_id == session_id)
    )
    present = {name.lower() for name in names_result.scalars().all()}

    new_players = []
    skipped = 0
    for template in templates:
        if template.name.lower() in present:
            skipped += 1
            continue
        player = Player(
            session_id=session_id,
            name=template.name,
            category=template.category,
            games_played=0,
            is_waiting=True,
        )
        session.add(player)
        new_players.append(player)
        present.add(template.name.lower())

    await session.flush()
    await session.commit()
    for player in new_players:
        await session.refresh(player)

    logger.info(f"Imported {len(new_players)} saved player(s) into session {session_id}")
    return {"added": [player_to_dict(p) for p in new_players], "skipped": skipped}
