"""
SQLAlchemy ORM models for the court rotation system.
"""

from typing import List
import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    true,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from courtqueue.database.db import Base


class PlayerCategory(str, enum.Enum):
    """Self-reported skill category. Informational only, never used for matching."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    EXPERT = "Expert"


_CATEGORY_CHECK = "category IN ('Beginner', 'Intermediate', 'Expert')"


class Agent(Base):
    """Organizer accounts with username/password authentication."""

    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    sessions = relationship("Session", back_populates="agent", cascade="all, delete-orphan")
    saved_players = relationship(
        "SavedPlayer", back_populates="agent", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_agents_username", "username"),)


class Session(Base):
    """A timed court booking that players register into."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(Integer, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    agent_name = Column(String, nullable=False)  # Organizer display name shown on the booking page
    court_name = Column(String, nullable=False)  # Venue name
    date = Column(String, nullable=False)  # ISO date string (YYYY-MM-DD)
    start_time = Column(String, nullable=True)  # HH:MM
    end_time = Column(String, nullable=True)  # HH:MM
    location_url = Column(String, nullable=True)
    court_count = Column(Integer, nullable=False, default=1, server_default="1")
    court_labels = Column(String, nullable=True)  # Comma separated display labels, one per court
    shareable_slug = Column(String(12), nullable=False, unique=True)  # Booking link code
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    agent = relationship("Agent", back_populates="sessions")
    matches = relationship("Match", back_populates="session", cascade="all, delete-orphan")
    players = relationship(
        "Player",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Player.id",
    )

    __table_args__ = (
        CheckConstraint("court_count >= 1", name="ck_sessions_court_count_positive"),
        Index("idx_sessions_agent", "agent_id"),
        Index("idx_sessions_slug", "shareable_slug"),
    )


class Player(Base):
    """A player registered into one session."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default=PlayerCategory.BEGINNER.value)
    games_played = Column(Integer, nullable=False, default=0, server_default="0")
    is_waiting = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    session = relationship("Session", back_populates="players")

    __table_args__ = (
        UniqueConstraint("session_id", "name", name="uq_players_session_name"),
        CheckConstraint(_CATEGORY_CHECK, name="ck_players_category"),
        CheckConstraint("games_played >= 0", name="ck_players_games_played"),
        Index("idx_players_session", "session_id"),
    )


class Match(Base):
    """A doubles match currently occupying a court. Deleted on completion."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    court_number = Column(Integer, nullable=False)
    team1_player1_id = Column(Integer, ForeignKey("players.id", ondelete="RESTRICT"), nullable=False)
    team1_player2_id = Column(Integer, ForeignKey("players.id", ondelete="RESTRICT"), nullable=False)
    team2_player1_id = Column(Integer, ForeignKey("players.id", ondelete="RESTRICT"), nullable=False)
    team2_player2_id = Column(Integer, ForeignKey("players.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    session = relationship("Session", back_populates="matches")
    team1_player1 = relationship("Player", foreign_keys=[team1_player1_id], lazy="select")
    team1_player2 = relationship("Player", foreign_keys=[team1_player2_id], lazy="select")
    team2_player1 = relationship("Player", foreign_keys=[team2_player1_id], lazy="select")
    team2_player2 = relationship("Player", foreign_keys=[team2_player2_id], lazy="select")

    @property
    def player_ids(self) -> List[int]:
        """All four player ids, team1 first."""
        return [
            self.team1_player1_id,
            self.team1_player2_id,
            self.team2_player1_id,
            self.team2_player2_id,
        ]

    __table_args__ = (
        UniqueConstraint("session_id", "court_number", name="uq_matches_session_court"),
        CheckConstraint("court_number >= 1", name="ck_matches_court_number"),
        Index("idx_matches_session", "session_id"),
    )


class SavedPlayer(Base):
    """Organizer-scoped player template used to pre-populate sessions."""

    __tablename__ = "saved_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(Integer, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default=PlayerCategory.BEGINNER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    agent = relationship("Agent", back_populates="saved_players")

    __table_args__ = (
        UniqueConstraint("agent_id", "name", name="uq_saved_players_agent_name"),
        CheckConstraint(_CATEGORY_CHECK, name="ck_saved_players_category"),
        Index("idx_saved_players_agent", "agent_id"),
    )
