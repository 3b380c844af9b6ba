"""
Player and court registry. Players exist across sessions; a player takes
part in a session through a SessionPlayer record (see sessions routes).
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from courtqueue.database import get_session
from courtqueue.models.court import Court
from courtqueue.models.player import Player
from courtqueue.models.team import Team

router = APIRouter()


class PlayerCreate(BaseModel):
    full_name: str
    team_id: Optional[int] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v):
        if not v or not v.strip():
            raise ValueError("full_name is required")
        return v.strip()


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    team_id: Optional[int] = None
    created_at: datetime


class CourtCreate(BaseModel):
    name: str
    active: bool = True


class CourtResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    active: bool


@router.get("/players", response_model=List[PlayerResponse])
def list_players(session: Session = Depends(get_session)):
    return session.exec(select(Player).order_by(Player.full_name, Player.id)).all()


@router.post("/players", response_model=PlayerResponse, status_code=201)
def create_player(payload: PlayerCreate, session: Session = Depends(get_session)):
    if payload.team_id is not None:
        team = session.get(Team, payload.team_id)
        if not team or team.deleted_at is not None:
            raise HTTPException(status_code=404, detail="Team not found")

    player = Player(full_name=payload.full_name, team_id=payload.team_id)
    session.add(player)
    session.commit()
    session.refresh(player)
    return player


@router.get("/courts", response_model=List[CourtResponse])
def list_courts(session: Session = Depends(get_session)):
    return session.exec(select(Court).order_by(Court.id)).all()


@router.post("/courts", response_model=CourtResponse, status_code=201)
def create_court(payload: CourtCreate, session: Session = Depends(get_session)):
    if not payload.name.strip():
        raise HTTPException(status_code=422, detail="name is required")
    court = Court(name=payload.name.strip(), active=payload.active)
    session.add(court)
    session.commit()
    session.refresh(court)
    return court
