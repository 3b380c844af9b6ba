from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from courtqueue.models.play_session import PlaySession
    from courtqueue.models.player import Player


class QueueEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", index=True)
    type: str  # "singles" | "doubles"
    status: str = Field(default="queued", index=True)  # "queued" | "assigned" | "cancelled"
    position: int = Field(default=0)
    manual_order: bool = Field(default=False)  # pinned by an operator
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    play_session: "PlaySession" = Relationship(back_populates="queue_entries")
    players: List["QueueEntryPlayer"] = Relationship(
        back_populates="entry",
        sa_relationship_kwargs={"order_by": "QueueEntryPlayer.slot", "cascade": "all, delete-orphan"},
    )


class QueueEntryPlayer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    entry_id: int = Field(foreign_key="queueentry.id", index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    slot: int = Field(default=0)  # 0-based order within the entry

    entry: "QueueEntry" = Relationship(back_populates="players")
    player: "Player" = Relationship()
