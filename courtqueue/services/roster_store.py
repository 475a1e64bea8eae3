"""
Roster and match store used by the match generation/completion services.

RosterStore is the contract the services are written against; SqlRosterStore
implements it on an async SQLAlchemy session. Store methods only flush; the
caller decides when to commit, so write batches can be grouped into
transactions.
"""

from typing import Dict, List, Optional, Sequence
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from courtqueue.database.models import Match, Player, Session
from courtqueue.utils.courts import court_label
from courtqueue.utils.datetime_utils import isoformat_or_none


# ============================================================================
# Serialization helpers
# ============================================================================

def player_to_dict(player: Player) -> Dict:
    """Convert a Player ORM instance to a dictionary."""
    return {
        "id": player.id,
        "session_id": player.session_id,
        "name": player.name,
        "category": player.category,
        "games_played": player.games_played or 0,
        "is_waiting": bool(player.is_waiting),
        "created_at": isoformat_or_none(player.created_at),
    }


def match_to_dict(match: Match, players: Sequence[Optional[Player]], labels: Optional[str]) -> Dict:
    """
    Convert a Match ORM instance to a dictionary.

    Args:
        match: Match ORM instance
        players: The four players in team1-then-team2 order
        labels: The session's stored court labels
    """
    as_dicts = [player_to_dict(p) if p else None for p in players]
    return {
        "id": match.id,
        "session_id": match.session_id,
        "court_number": match.court_number,
        "court_label": court_label(labels, match.court_number),
        "team1": as_dicts[0:2],
        "team2": as_dicts[2:4],
        "created_at": isoformat_or_none(match.created_at),
    }


# ============================================================================
# Store contract
# ============================================================================

class RosterStore:
    """Operations the court rotation services consume from persistence."""

    async def get_court_count(self, session_id: int) -> Optional[int]:
        """Court count for a session, or None if the session does not exist."""
        raise NotImplementedError

    async def list_players(self, session_id: int) -> List[Dict]:
        raise NotImplementedError

    async def list_active_matches(self, session_id: int) -> List[Dict]:
        raise NotImplementedError

    async def get_match(self, match_id: int) -> Optional[Dict]:
        raise NotImplementedError

    async def create_match(
        self,
        session_id: int,
        court_number: int,
        team1_player_ids: Sequence[int],
        team2_player_ids: Sequence[int],
    ) -> Dict:
        raise NotImplementedError

    async def delete_match(self, match_id: int) -> bool:
        """Delete a match. Returns False if it no longer exists."""
        raise NotImplementedError

    async def update_player(
        self,
        player_id: int,
        games_played: Optional[int] = None,
        is_waiting: Optional[bool] = None,
    ) -> Optional[Dict]:
        raise NotImplementedError

    async def commit(self) -> None:
        """Make the writes issued since the last commit durable."""
        raise NotImplementedError

    async def rollback(self) -> None:
        """Discard the writes issued since the last commit."""
        raise NotImplementedError


# ============================================================================
# SQLAlchemy implementation
# ============================================================================

_MATCH_PLAYERS = (
    selectinload(Match.team1_player1),
    selectinload(Match.team1_player2),
    selectinload(Match.team2_player1),
    selectinload(Match.team2_player2),
)


class SqlRosterStore(RosterStore):
    """RosterStore backed by an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _court_labels(self, session_id: int) -> Optional[str]:
        result = await self.session.execute(
            select(Session.court_labels).where(Session.id == session_id)
        )
        return result.scalar_one_or_none()

    async def get_court_count(self, session_id: int) -> Optional[int]:
        result = await self.session.execute(
            select(Session.court_count).where(Session.id == session_id)
        )
        return result.scalar_one_or_none()

    async def list_players(self, session_id: int) -> List[Dict]:
        result = await self.session.execute(
            select(Player)
            .where(Player.session_id == session_id)
            .order_by(Player.id)
            .execution_options(populate_existing=True)
        )
        return [player_to_dict(p) for p in result.scalars().all()]

    async def list_active_matches(self, session_id: int) -> List[Dict]:
        labels = await self._court_labels(session_id)
        result = await self.session.execute(
            select(Match)
            .options(*_MATCH_PLAYERS)
            .where(Match.session_id == session_id)
            .order_by(Match.court_number)
        )
        return [
            match_to_dict(
                m,
                [m.team1_player1, m.team1_player2, m.team2_player1, m.team2_player2],
                labels,
            )
            for m in result.scalars().all()
        ]

    async def get_match(self, match_id: int) -> Optional[Dict]:
        result = await self.session.execute(
            select(Match)
            .options(*_MATCH_PLAYERS)
            .where(Match.id == match_id)
            .execution_options(populate_existing=True)
        )
        match = result.scalar_one_or_none()
        if not match:
            return None
        labels = await self._court_labels(match.session_id)
        return match_to_dict(
            match,
            [match.team1_player1, match.team1_player2, match.team2_player1, match.team2_player2],
            labels,
        )

    async def create_match(
        self,
        session_id: int,
        court_number: int,
        team1_player_ids: Sequence[int],
        team2_player_ids: Sequence[int],
    ) -> Dict:
        ids = list(team1_player_ids) + list(team2_player_ids)
        if len(ids) != 4 or len(set(ids)) != 4:
            raise ValueError("A match needs four distinct players")

        new_match = Match(
            session_id=session_id,
            court_number=court_number,
            team1_player1_id=ids[0],
            team1_player2_id=ids[1],
            team2_player1_id=ids[2],
            team2_player2_id=ids[3],
        )
        self.session.add(new_match)
        await self.session.flush()
        await self.session.refresh(new_match, attribute_names=["created_at"])

        players = [await self.session.get(Player, pid) for pid in ids]
        labels = await self._court_labels(session_id)
        return match_to_dict(new_match, players, labels)

    async def delete_match(self, match_id: int) -> bool:
        result = await self.session.execute(delete(Match).where(Match.id == match_id))
        return result.rowcount > 0

    async def update_player(
        self,
        player_id: int,
        games_played: Optional[int] = None,
        is_waiting: Optional[bool] = None,
    ) -> Optional[Dict]:
        player = await self.session.get(Player, player_id)
        if not player:
            return None
        if games_played is not None:
            if games_played < 0:
                raise ValueError("games_played cannot be negative")
            player.games_played = games_played
        if is_waiting is not None:
            player.is_waiting = is_waiting
        await self.session.flush()
        return player_to_dict(player)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
