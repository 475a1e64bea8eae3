"""Organizer authentication route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from courtqueue.api.routes import limiter, INVALID_CREDENTIALS_RESPONSE
from courtqueue.database.db import get_db_session
from courtqueue.services import auth_service, agent_service
from courtqueue.api.auth_dependencies import get_current_agent
from courtqueue.models.schemas import (
    RegisterRequest,
    LoginRequest,
    AuthResponse,
    AgentResponse,
    ChangePasswordRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _auth_response(agent: dict) -> AuthResponse:
    token_data = {"agent_id": agent["id"], "username": agent["username"]}
    return AuthResponse(
        access_token=auth_service.create_access_token(data=token_data),
        token_type="bearer",
        agent_id=agent["id"],
        username=agent["username"],
    )


@router.post("/api/auth/register", response_model=AuthResponse)
@limiter.limit("10/minute")
async def register(
    request: Request, payload: RegisterRequest, session: AsyncSession = Depends(get_db_session)
):
    """Create an organizer account and log it in."""
    try:
        username = auth_service.normalize_username(payload.username)
        auth_service.validate_password(payload.password)
        agent = await agent_service.create_agent(
            session, username, auth_service.hash_password(payload.password)
        )
        return _auth_response(agent)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error during registration: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error during registration: {str(e)}")


@router.post("/api/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request, payload: LoginRequest, session: AsyncSession = Depends(get_db_session)
):
    """Login with username and password."""
    try:
        agent = await agent_service.get_agent_by_username(session, payload.username)
        if not agent:
            raise INVALID_CREDENTIALS_RESPONSE
        if not auth_service.verify_password(payload.password, agent["password_hash"]):
            raise INVALID_CREDENTIALS_RESPONSE
        return _auth_response(agent)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during login: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error during login: {str(e)}")


@router.get("/api/auth/me", response_model=AgentResponse)
async def get_current_agent_info(current_agent: dict = Depends(get_current_agent)):
    """Get current authenticated agent information."""
    return AgentResponse(**current_agent)


@router.post("/api/auth/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    current_agent: dict = Depends(get_current_agent),
    session: AsyncSession = Depends(get_db_session),
):
    """Change the current agent's password after checking the old one."""
    try:
        password_hash = await agent_service.get_password_hash(session, current_agent["id"])
        if not password_hash or not auth_service.verify_password(
            payload.current_password, password_hash
        ):
            raise HTTPException(status_code=401, detail="Current password is incorrect")
        auth_service.validate_password(payload.new_password)

        updated = await agent_service.update_agent_password(
            session, current_agent["id"], auth_service.hash_password(payload.new_password)
        )
        if not updated:
            raise HTTPException(status_code=404, detail="Agent not found")
        return {"status": "success", "message": "Password updated"}
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error changing password: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error changing password: {str(e)}")
