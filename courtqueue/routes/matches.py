"""
Match runtime: view and finish matches started by court assignment.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from courtqueue.database import get_session
from courtqueue.models.match import Match
from courtqueue.routes.sessions import get_play_session_or_404
from courtqueue.services.match_assignment import MatchStateError, finish_match

router = APIRouter()


class MatchFinishRequest(BaseModel):
    winner_team: Optional[int] = None


class MatchParticipantState(BaseModel):
    player_id: int
    team_number: int
    team_id: Optional[int] = None


class MatchResponse(BaseModel):
    id: int
    session_id: int
    court_id: int
    match_type: str
    status: str
    winner_team: Optional[int] = None
    entry_ids: List[int]
    teams: List[List[int]]
    participants: List[MatchParticipantState]
    started_at: datetime
    ended_at: Optional[datetime] = None


def match_response(m: Match) -> MatchResponse:
    participants = list(m.participants)
    return MatchResponse(
        id=m.id,
        session_id=m.session_id,
        court_id=m.court_id,
        match_type=m.match_type,
        status=m.status,
        winner_team=m.winner_team,
        entry_ids=list(m.entry_ids or []),
        teams=[
            [p.player_id for p in participants if p.team_number == 1],
            [p.player_id for p in participants if p.team_number == 2],
        ],
        participants=[
            MatchParticipantState(player_id=p.player_id, team_number=p.team_number, team_id=p.team_id)
            for p in participants
        ],
        started_at=m.started_at,
        ended_at=m.ended_at,
    )


@router.get("/sessions/{session_id}/matches", response_model=List[MatchResponse])
def list_session_matches(session_id: int, session: Session = Depends(get_session)):
    """Matches of a session, newest first."""
    get_play_session_or_404(session, session_id)
    matches = session.exec(
        select(Match).where(Match.session_id == session_id).order_by(Match.id.desc())  # type: ignore[union-attr]
    ).all()
    return [match_response(m) for m in matches]


@router.get("/matches/{match_id}", response_model=MatchResponse)
def get_match(match_id: int, session: Session = Depends(get_session)):
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    return match_response(match)


@router.post("/matches/{match_id}/finish", response_model=MatchResponse)
def finish(match_id: int, payload: MatchFinishRequest, session: Session = Depends(get_session)):
    """End a match, free its court and, if enabled, send both entries back to the queue."""
    match = session.get(Match, match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")
    if payload.winner_team not in (None, 1, 2):
        raise HTTPException(status_code=422, detail="winner_team must be 1, 2 or null")

    try:
        match = finish_match(session, match, payload.winner_team)
    except MatchStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return match_response(match)
