"""
Team Management API Routes
Teams only matter in tournament sessions: an entry may be paired only
against an entry of a different team.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from courtqueue.database import get_session
from courtqueue.models.player import Player
from courtqueue.models.team import Team

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TeamCreateRequest(BaseModel):
    name: str
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TeamUpdateRequest(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class TeamMembersRequest(BaseModel):
    player_ids: List[int]


class TeamPlayer(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str] = None
    created_at: datetime
    players: List[TeamPlayer] = []


def _team_response(team: Team) -> TeamResponse:
    players = sorted(team.players, key=lambda p: (p.full_name or "", p.id))
    return TeamResponse(
        id=team.id,
        name=team.name,
        color=team.color,
        created_at=team.created_at,
        players=[TeamPlayer.model_validate(p) for p in players],
    )


def _get_live_team(session: Session, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team or team.deleted_at is not None:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


# ============================================================================
# Team CRUD Endpoints
# ============================================================================


@router.get("/teams", response_model=List[TeamResponse])
def get_teams(session: Session = Depends(get_session)):
    """All teams that are not deleted, oldest first, players by name."""
    teams = session.exec(
        select(Team).where(Team.deleted_at.is_(None)).order_by(Team.created_at, Team.id)  # type: ignore[union-attr]
    ).all()
    return [_team_response(t) for t in teams]


@router.post("/teams", response_model=TeamResponse, status_code=201)
def create_team(request: TeamCreateRequest, session: Session = Depends(get_session)):
    team = Team(name=request.name, color=request.color or None)
    session.add(team)
    session.commit()
    session.refresh(team)
    return _team_response(team)


@router.patch("/teams/{team_id}", response_model=TeamResponse)
def update_team(team_id: int, request: TeamUpdateRequest, session: Session = Depends(get_session)):
    """Rename or recolor a team. At least one field must be provided."""
    updates = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    team = _get_live_team(session, team_id)
    if "name" in updates:
        if not updates["name"] or not updates["name"].strip():
            raise HTTPException(status_code=400, detail="name cannot be empty")
        team.name = updates["name"].strip()
    if "color" in updates:
        team.color = updates["color"]

    session.add(team)
    session.commit()
    session.refresh(team)
    return _team_response(team)


@router.delete("/teams/{team_id}", status_code=204)
def delete_team(team_id: int, session: Session = Depends(get_session)):
    """
    Soft-delete a team. Its players become teamless, which makes their
    queue entries unassignable in tournament sessions.
    """
    team = _get_live_team(session, team_id)

    for player in session.exec(select(Player).where(Player.team_id == team_id)).all():
        player.team_id = None
        session.add(player)
    team.deleted_at = datetime.utcnow()
    session.add(team)
    session.commit()

    return None


@router.post("/teams/{team_id}/members", response_model=TeamResponse)
def set_team_members(team_id: int, request: TeamMembersRequest, session: Session = Depends(get_session)):
    """
    Replace the team's membership with exactly *player_ids*.

    Players currently on the team but not listed are detached.
    """
    team = _get_live_team(session, team_id)

    player_ids = list(dict.fromkeys(request.player_ids))
    if player_ids:
        found = session.exec(select(Player).where(Player.id.in_(player_ids))).all()  # type: ignore[union-attr]
        if len(found) != len(player_ids):
            raise HTTPException(status_code=404, detail="Player not found")
    else:
        found = []

    for player in session.exec(select(Player).where(Player.team_id == team_id)).all():
        if player.id not in player_ids:
            player.team_id = None
            session.add(player)
    for player in found:
        player.team_id = team_id
        session.add(player)

    session.commit()
    session.refresh(team)
    return _team_response(team)
