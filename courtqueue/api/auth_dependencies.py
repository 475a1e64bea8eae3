"""
Authentication dependencies for FastAPI routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from courtqueue.services import auth_service, agent_service
from courtqueue.database.db import get_db_session
from courtqueue.database.models import Match, Player, Session

security = HTTPBearer()


async def get_current_agent(
    session: AsyncSession = Depends(get_db_session),
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated agent from JWT token.

    Args:
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        Agent dictionary

    Raises:
        HTTPException: If token is invalid or agent not found
    """
    token = credentials.credentials

    payload = auth_service.verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    agent_id = payload.get("agent_id")
    if agent_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    agent = await agent_service.get_agent_by_id(session, agent_id)
    if agent is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Agent not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return agent


async def _session_owner(session: AsyncSession, session_id: int) -> Optional[int]:
    result = await session.execute(select(Session.agent_id).where(Session.id == session_id))
    return result.scalar_one_or_none()


async def _player_owner(session: AsyncSession, player_id: int) -> Optional[int]:
    result = await session.execute(
        select(Session.agent_id)
        .join(Player, Player.session_id == Session.id)
        .where(Player.id == player_id)
    )
    return result.scalar_one_or_none()


async def _match_owner(session: AsyncSession, match_id: int) -> Optional[int]:
    result = await session.execute(
        select(Session.agent_id)
        .join(Match, Match.session_id == Session.id)
        .where(Match.id == match_id)
    )
    return result.scalar_one_or_none()


def _check_owner(owner_id, agent: dict, not_found: str) -> None:
    if owner_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    if owner_id != agent["id"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")


def make_require_session_owner():
    """Require the current agent to own the session in the path."""

    async def _dep(
        session_id: int,
        agent: dict = Depends(get_current_agent),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        _check_owner(await _session_owner(session, session_id), agent, "Session not found")
        return agent

    return _dep


def make_require_player_owner():
    """Require the current agent to own the session of the player in the path."""

    async def _dep(
        player_id: int,
        agent: dict = Depends(get_current_agent),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        _check_owner(await _player_owner(session, player_id), agent, "Player not found")
        return agent

    return _dep


def make_require_match_owner():
    """Require the current agent to own the session of the match in the path."""

    async def _dep(
        match_id: int,
        agent: dict = Depends(get_current_agent),
        session: AsyncSession = Depends(get_db_session),
    ) -> dict:
        _check_owner(await _match_owner(session, match_id), agent, "Match not found")
        return agent

    return _dep
