"""Saved-player pool route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.database.db import get_db_session
from courtqueue.services import data_service
from courtqueue.api.auth_dependencies import get_current_agent, make_require_session_owner
from courtqueue.models.schemas import (
    ImportPoolRequest,
    ImportPoolResponse,
    SavePoolResponse,
    SavedPlayerCreate,
    SavedPlayerResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/saved-players", response_model=List[SavedPlayerResponse])
async def list_saved_players(
    agent: dict = Depends(get_current_agent),
    session: AsyncSession = Depends(get_db_session),
):
    """List the current agent's saved players by name."""
    return await data_service.list_saved_players(session, agent["id"])


@router.post("/api/saved-players", response_model=SavedPlayerResponse)
async def save_player(
    payload: SavedPlayerCreate,
    agent: dict = Depends(get_current_agent),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return await data_service.save_player_to_pool(
            session, agent["id"], payload.name, payload.category
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving player to pool: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error saving player: {str(e)}")


@router.delete("/api/saved-players/{saved_player_id}")
async def delete_saved_player(
    saved_player_id: int,
    agent: dict = Depends(get_current_agent),
    session: AsyncSession = Depends(get_db_session),
):
    if not await data_service.delete_saved_player(session, agent["id"], saved_player_id):
        raise HTTPException(status_code=404, detail="Saved player not found")
    return {"status": "success", "message": "Saved player deleted"}


@router.post("/api/sessions/{session_id}/save-to-pool", response_model=SavePoolResponse)
async def save_session_players(
    session_id: int,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Save every player of the session to the pool, skipping names already saved."""
    try:
        return await data_service.save_session_players_to_pool(session, agent["id"], session_id)
    except Exception as e:
        logger.error(f"Error saving session {session_id} players to pool: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error saving players: {str(e)}")


@router.post("/api/sessions/{session_id}/import-pool", response_model=ImportPoolResponse)
async def import_pool(
    session_id: int,
    payload: ImportPoolRequest,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Add saved players to the session as waiting players.
    Body: { saved_player_ids?: [int] } (omit to import the whole pool)
    """
    try:
        return await data_service.import_saved_players(
            session, agent["id"], session_id, payload.saved_player_ids
        )
    except Exception as e:
        logger.error(f"Error importing pool into session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error importing players: {str(e)}")
