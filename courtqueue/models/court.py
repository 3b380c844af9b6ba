from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtqueue.models.play_session import PlaySession


class Court(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CourtSession(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("session_id", "court_id", name="uq_courtsession_session_court"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", index=True)
    court_id: int = Field(foreign_key="court.id")
    status: str = Field(default="available")  # "available" | "in_use"
    current_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    play_session: "PlaySession" = Relationship(back_populates="court_sessions")
    court: "Court" = Relationship()
