"""Player roster route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.database.db import get_db_session
from courtqueue.services import data_service
from courtqueue.services.errors import PlayerInMatchError
from courtqueue.api.auth_dependencies import make_require_player_owner, make_require_session_owner
from courtqueue.models.schemas import (
    PlayerCreate,
    PlayerResponse,
    PlayerUpdate,
    PlayerWaitingUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions/{session_id}/players", response_model=List[PlayerResponse])
async def list_players(
    session_id: int,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """List a session's players in registration order with their is_playing flag."""
    try:
        return await data_service.list_players(session, session_id)
    except Exception as e:
        logger.error(f"Error listing players for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing players: {str(e)}")


@router.post("/api/sessions/{session_id}/players", response_model=PlayerResponse)
async def add_player(
    session_id: int,
    payload: PlayerCreate,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Add a player to the session's waiting pool."""
    try:
        return await data_service.add_player(session, session_id, payload.name, payload.category)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error adding player to session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error adding player: {str(e)}")


@router.patch("/api/players/{player_id}", response_model=PlayerResponse)
async def update_player(
    player_id: int,
    payload: PlayerUpdate,
    agent: dict = Depends(make_require_player_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Rename a player or change their category."""
    try:
        result = await data_service.update_player_details(
            session, player_id, name=payload.name, category=payload.category
        )
        if not result:
            raise HTTPException(status_code=404, detail="Player not found")
        return result
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating player: {str(e)}")


@router.put("/api/players/{player_id}/waiting", response_model=PlayerResponse)
async def set_player_waiting(
    player_id: int,
    payload: PlayerWaitingUpdate,
    agent: dict = Depends(make_require_player_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Bench a player or return them to the queue. Not allowed while they are on court."""
    try:
        result = await data_service.set_player_waiting(session, player_id, payload.is_waiting)
        if not result:
            raise HTTPException(status_code=404, detail="Player not found")
        return result
    except HTTPException:
        raise
    except PlayerInMatchError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating waiting flag for player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating player: {str(e)}")


@router.delete("/api/players/{player_id}")
async def delete_player(
    player_id: int,
    agent: dict = Depends(make_require_player_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a player. Not allowed while they are on court."""
    try:
        if not await data_service.delete_player(session, player_id):
            raise HTTPException(status_code=404, detail="Player not found")
        return {"status": "success", "message": "Player deleted"}
    except HTTPException:
        raise
    except PlayerInMatchError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error deleting player {player_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting player: {str(e)}")
