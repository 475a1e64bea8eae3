"""Session management route handlers (sessions and their court configuration)."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.database.db import get_db_session
from courtqueue.services import data_service
from courtqueue.api.auth_dependencies import get_current_agent, make_require_session_owner
from courtqueue.models.schemas import (
    CourtConfigUpdate,
    SessionCreate,
    SessionResponse,
    SessionUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions", response_model=List[SessionResponse])
async def list_sessions(
    agent: dict = Depends(get_current_agent),
    session: AsyncSession = Depends(get_db_session),
):
    """List the current agent's sessions, newest first."""
    try:
        return await data_service.list_sessions(session, agent_id=agent["id"])
    except Exception as e:
        logger.error(f"Error listing sessions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing sessions: {str(e)}")


@router.post("/api/sessions", response_model=SessionResponse)
async def create_session(
    payload: SessionCreate,
    agent: dict = Depends(get_current_agent),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Create a session owned by the current agent.
    The response includes the shareable_slug used for the public booking link.
    """
    try:
        return await data_service.create_session(
            session,
            agent_id=agent["id"],
            agent_name=payload.agent_name,
            court_name=payload.court_name,
            date=payload.date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            location_url=payload.location_url,
            court_count=payload.court_count,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating session: {str(e)}")


@router.get("/api/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Get one session."""
    result = await data_service.get_session(session, session_id)
    if not result:
        raise HTTPException(status_code=404, detail="Session not found")
    return result


@router.patch("/api/sessions/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: int,
    payload: SessionUpdate,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Update session metadata (organizer name, venue, date, times, location)."""
    try:
        result = await data_service.update_session(
            session, session_id, **payload.model_dump(exclude_unset=True)
        )
        if not result:
            raise HTTPException(status_code=404, detail="Session not found")
        return result
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating session: {str(e)}")


@router.delete("/api/sessions/{session_id}")
async def delete_session(
    session_id: int,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete a session with its players and active matches."""
    try:
        if not await data_service.delete_session(session, session_id):
            raise HTTPException(status_code=404, detail="Session not found")
        return {"status": "success", "message": "Session deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting session: {str(e)}")


@router.put("/api/sessions/{session_id}/courts", response_model=SessionResponse)
async def update_courts(
    session_id: int,
    payload: CourtConfigUpdate,
    agent: dict = Depends(make_require_session_owner()),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Configure courts. Body: { court_count: int } or { court_labels: [str] }.

    Matches already running on a court above a lowered count stay active
    until completed.
    """
    try:
        if payload.court_labels is not None:
            result = await data_service.set_court_labels(session, session_id, payload.court_labels)
        else:
            result = await data_service.set_court_count(session, session_id, payload.court_count)
        if not result:
            raise HTTPException(status_code=404, detail="Session not found")
        return result
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating courts for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating courts: {str(e)}")
