"""Match generation and completion route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.database.db import get_db_session
from courtqueue.services import match_service
from courtqueue.services.errors import (
    InsufficientPlayersError,
    MatchNotFoundError,
    NoIdleCourtsError,
    StoreFailureError,
)
from courtqueue.services.roster_store import SqlRosterStore
from courtqueue.api.auth_dependencies import make_require_match_owner, make_require_session_owner
from courtqueue.models.schemas import (
    CompleteMatchResponse,
    GenerateMatchesResponse,
    MatchResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions/{session_id}/matches", response_model=List[MatchResponse])
async def list_active_matches(
    session_id: int,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """List the session's active matches in court order."""
    try:
        return await SqlRosterStore(session).list_active_matches(session_id)
    except Exception as e:
        logger.error(f"Error listing matches for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing matches: {str(e)}")


@router.post("/api/sessions/{session_id}/matches/generate", response_model=GenerateMatchesResponse)
async def generate_matches(
    session_id: int,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Fill every idle court with a new match from the waiting players,
    fewest games played first.

    Errors:
        409: all courts occupied, or fewer than four waiting players
        500: a write failed part way; courts already filled stay filled
    """
    try:
        created = await match_service.generate_matches(SqlRosterStore(session), session_id)
        return {"created": created}
    except (NoIdleCourtsError, InsufficientPlayersError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StoreFailureError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating matches for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating matches: {str(e)}")


@router.post("/api/matches/{match_id}/complete", response_model=CompleteMatchResponse)
async def complete_match(
    match_id: int,
    agent: dict = Depends(make_require_match_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Complete a match: its players gain a game and rejoin the queue, and the court frees up."""
    try:
        updated = await match_service.complete_match(SqlRosterStore(session), match_id)
        return {"match_id": match_id, "updated_players": updated}
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreFailureError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error completing match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error completing match: {str(e)}")
