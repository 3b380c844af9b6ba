from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtqueue.models.play_session import PlaySession
    from courtqueue.models.player import Player


class SessionPlayer(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("session_id", "player_id", name="uq_session_player"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    status: str = Field(default="registered")  # registered | checked_in | playing | checked_out
    last_played_at: Optional[datetime] = Field(default=None)
    games_played: int = Field(default=0)
    wins: int = Field(default=0)
    losses: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    play_session: "PlaySession" = Relationship(back_populates="session_players")
    player: "Player" = Relationship()
