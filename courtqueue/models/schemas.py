"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, model_validator

from courtqueue.database.models import PlayerCategory
from courtqueue.utils.constants import MAX_COURT_COUNT, MAX_PLAYER_NAME_LENGTH


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    """Request to create an organizer account."""

    username: str
    password: str


class LoginRequest(BaseModel):
    """Request to login with username and password."""

    username: str
    password: str


class AuthResponse(BaseModel):
    """Authentication response with JWT token."""

    access_token: str
    token_type: str = "bearer"
    agent_id: int
    username: str


class AgentResponse(BaseModel):
    """Organizer account information."""

    id: int
    username: str
    created_at: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    """Request to change the current agent's password."""

    current_password: str
    new_password: str


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class SessionCreate(BaseModel):
    """Request to create a session. date accepts YYYY-MM-DD or MM/DD/YYYY."""

    agent_name: str
    court_name: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location_url: Optional[str] = None
    court_count: int = Field(default=1, ge=1, le=MAX_COURT_COUNT)


class SessionUpdate(BaseModel):
    """Partial session metadata update. Omitted fields are left unchanged."""

    agent_name: Optional[str] = None
    court_name: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location_url: Optional[str] = None


class SessionResponse(BaseModel):
    """Session data."""

    id: int
    agent_id: int
    agent_name: str
    court_name: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location_url: Optional[str] = None
    court_count: int
    court_labels: List[str]
    shareable_slug: str
    player_count: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CourtConfigUpdate(BaseModel):
    """Set either the court count or the court labels (which also sets the count)."""

    court_count: Optional[int] = Field(default=None, ge=1, le=MAX_COURT_COUNT)
    court_labels: Optional[List[str]] = None

    @model_validator(mode="after")
    def validate_count_or_labels(self):
        """Ensure exactly one of court_count or court_labels is provided."""
        if self.court_count is None and self.court_labels is None:
            raise ValueError("Either court_count or court_labels must be provided")
        if self.court_count is not None and self.court_labels is not None:
            raise ValueError("Provide either court_count or court_labels, not both")
        return self


# ---------------------------------------------------------------------------
# Players
# ---------------------------------------------------------------------------

class PlayerCreate(BaseModel):
    """Request to add a player to a session."""

    name: str = Field(min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    category: PlayerCategory = PlayerCategory.BEGINNER


class PlayerUpdate(BaseModel):
    """Request to rename a player or change their category."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    category: Optional[PlayerCategory] = None


class PlayerWaitingUpdate(BaseModel):
    """Bench a player (false) or return them to the waiting pool (true)."""

    is_waiting: bool


class PlayerResponse(BaseModel):
    """Player data."""

    id: int
    session_id: int
    name: str
    category: str
    games_played: int
    is_waiting: bool
    is_playing: Optional[bool] = None
    created_at: Optional[str] = None


class BookingRequest(BaseModel):
    """Public self-registration into a session."""

    name: str = Field(min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    category: PlayerCategory = PlayerCategory.BEGINNER


# ---------------------------------------------------------------------------
# Matches
# ---------------------------------------------------------------------------

class MatchResponse(BaseModel):
    """An active match on a court."""

    id: int
    session_id: int
    court_number: int
    court_label: str
    team1: List[PlayerResponse]
    team2: List[PlayerResponse]
    created_at: Optional[str] = None


class GenerateMatchesResponse(BaseModel):
    """Matches created by one generate call, in ascending court order."""

    created: List[MatchResponse]


class CompleteMatchResponse(BaseModel):
    """Players released back to the waiting pool."""

    match_id: int
    updated_players: List[PlayerResponse]


# ---------------------------------------------------------------------------
# Saved-player pool
# ---------------------------------------------------------------------------

class SavedPlayerCreate(BaseModel):
    """Request to save a player template."""

    name: str = Field(min_length=1, max_length=MAX_PLAYER_NAME_LENGTH)
    category: PlayerCategory = PlayerCategory.BEGINNER


class SavedPlayerResponse(BaseModel):
    """Saved player template."""

    id: int
    agent_id: int
    name: str
    category: str
    created_at: Optional[str] = None


class ImportPoolRequest(BaseModel):
    """Saved players to import. Omit saved_player_ids to import the whole pool."""

    saved_player_ids: Optional[List[int]] = None


class ImportPoolResponse(BaseModel):
    added: List[PlayerResponse]
    skipped: int


class SavePoolResponse(BaseModel):
    added: int
    skipped: int


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    database: str
