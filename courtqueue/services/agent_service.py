"""
Agent service layer for organizer account database operations.
"""

from typing import Dict, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from courtqueue.database.models import Agent
from courtqueue.utils.datetime_utils import isoformat_or_none
import logging

logger = logging.getLogger(__name__)


async def create_agent(session: AsyncSession, username: str, password_hash: str) -> Dict:
    """
    Create a new agent account.

    Args:
        session: Database session
        username: Normalized username
        password_hash: Hashed password

    Returns:
        Agent dictionary (without password hash)

    Raises:
        ValueError: If the username is already taken
    """
    result = await session.execute(
        select(Agent.id).where(func.lower(Agent.username) == username.lower())
    )
    if result.scalar_one_or_none():
        raise ValueError("Username already exists")

    new_agent = Agent(username=username, password_hash=password_hash)
    session.add(new_agent)
    await session.flush()
    await session.commit()
    await session.refresh(new_agent)

    logger.info(f"Created agent {new_agent.id} ({username})")
    return _agent_to_dict(new_agent)


async def get_agent_by_username(session: AsyncSession, username: str) -> Optional[Dict]:
    """
    Get agent by username (case-insensitive), including the password hash.

    Args:
        session: Database session
        username: Username

    Returns:
        Agent dictionary with password_hash, or None if not found
    """
    result = await session.execute(
        select(Agent).where(func.lower(Agent.username) == username.strip().lower()).limit(1)
    )
    agent = result.scalar_one_or_none()
    if not agent:
        return None
    return {**_agent_to_dict(agent), "password_hash": agent.password_hash}


async def get_agent_by_id(session: AsyncSession, agent_id: int) -> Optional[Dict]:
    """
    Get agent by ID.

    Returns:
        Agent dictionary or None if not found
    """
    result = await session.execute(select(Agent).where(Agent.id == agent_id))
    agent = result.scalar_one_or_none()
    return _agent_to_dict(agent) if agent else None


async def get_password_hash(session: AsyncSession, agent_id: int) -> Optional[str]:
    result = await session.execute(select(Agent.password_hash).where(Agent.id == agent_id))
    return result.scalar_one_or_none()


async def update_agent_password(session: AsyncSession, agent_id: int, password_hash: str) -> bool:
    """
    Update an agent's password.

    Returns:
        True if successful, False if the agent does not exist
    """
    result = await session.execute(
        update(Agent)
        .where(Agent.id == agent_id)
        .values(password_hash=password_hash, updated_at=func.now())
    )
    await session.commit()
    return result.rowcount > 0


def _agent_to_dict(agent: Agent) -> Dict:
    """Convert an Agent ORM instance to a dictionary (no password hash)."""
    return {
        "id": agent.id,
        "username": agent.username,
        "created_at": isoformat_or_none(agent.created_at),
    }
