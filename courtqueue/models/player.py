from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtqueue.models.team import Team


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str
    # Only consulted in tournament sessions
    team_id: Optional[int] = Field(default=None, foreign_key="team.id", index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    team: Optional["Team"] = Relationship(back_populates="players")
