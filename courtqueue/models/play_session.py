from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtqueue.models.court import CourtSession
    from courtqueue.models.match import Match
    from courtqueue.models.queue_entry import QueueEntry
    from courtqueue.models.session_player import SessionPlayer


class PlaySession(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    mode: str = Field(default="usual")  # "usual" | "tournament"
    game_type: str = Field(default="doubles")  # "singles" | "doubles"
    status: str = Field(default="draft", index=True)  # "draft" | "open" | "closed"
    return_to_queue: bool = Field(default=True)
    announcements: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships (rows are deleted with the session)
    session_players: List["SessionPlayer"] = Relationship(
        back_populates="play_session", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    queue_entries: List["QueueEntry"] = Relationship(
        back_populates="play_session", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    court_sessions: List["CourtSession"] = Relationship(
        back_populates="play_session", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
    matches: List["Match"] = Relationship(
        back_populates="play_session", sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )
