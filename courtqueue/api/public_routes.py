"""
Public API routes. No authentication required.

Booking pages reached through a session's shareable link.
All routes are prefixed with /api/public.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.api.routes import limiter
from courtqueue.database.db import get_db_session
from courtqueue.models.schemas import BookingRequest, PlayerResponse, SessionResponse
from courtqueue.services import data_service

logger = logging.getLogger(__name__)


async def _no_store(response: Response):
    """Set Cache-Control: no-store on booking responses."""
    response.headers["Cache-Control"] = "no-store"


public_router = APIRouter(
    prefix="/api/public", tags=["public"], dependencies=[Depends(_no_store)]
)


@public_router.get("/sessions/{slug}", response_model=SessionResponse)
async def get_booking_session(slug: str, session: AsyncSession = Depends(get_db_session)):
    """
    Get the session behind a booking link.

    Returns the session details and current player count. No authentication required.
    """
    result = await data_service.get_session_by_slug(session, slug)
    if not result:
        raise HTTPException(status_code=404, detail="Session not found")
    return result


@public_router.post("/sessions/{slug}/book", response_model=PlayerResponse)
@limiter.limit("20/minute")
async def book_session(
    request: Request,
    slug: str,
    payload: BookingRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Register a player into the session behind a booking link."""
    try:
        booking_session = await data_service.get_session_by_slug(session, slug)
        if not booking_session:
            raise HTTPException(status_code=404, detail="Session not found")
        player = await data_service.add_player(
            session, booking_session["id"], payload.name, payload.category
        )
        logger.info(f"Booked player {player['id']} into session {booking_session['id']}")
        return player
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.error(f"Error booking into session {slug}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to book session")
