from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtqueue.models.play_session import PlaySession
    from courtqueue.models.team import Team


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", index=True)
    court_id: int = Field(foreign_key="court.id")
    match_type: str  # "singles" | "doubles"
    status: str = Field(default="in_progress")  # "in_progress" | "ended"
    winner_team: Optional[int] = Field(default=None)  # 1 | 2 | None
    # Queue entries consumed by this match, side 1 first
    entry_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    started_at: datetime = Field(default_factory=datetime.utcnow)
    ended_at: Optional[datetime] = Field(default=None)

    play_session: "PlaySession" = Relationship(back_populates="matches")
    participants: List["MatchParticipant"] = Relationship(
        back_populates="match",
        sa_relationship_kwargs={"order_by": "MatchParticipant.id", "cascade": "all, delete-orphan"},
    )


class MatchParticipant(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    player_id: int = Field(foreign_key="player.id")
    team_number: int  # 1 | 2
    # Player's team when the match started (tournament standings)
    team_id: Optional[int] = Field(default=None, foreign_key="team.id")

    match: "Match" = Relationship(back_populates="participants")
    team: Optional["Team"] = Relationship()
