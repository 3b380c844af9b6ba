"""
Play session lifecycle, session players (check-in), and standings.
"""
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlmodel import Session, select

from courtqueue.database import get_session
from courtqueue.models.court import Court, CourtSession
from courtqueue.models.play_session import PlaySession
from courtqueue.models.player import Player
from courtqueue.models.session_player import SessionPlayer
from courtqueue.services.standings import rank_players, team_standings

router = APIRouter()

SessionMode = Literal["usual", "tournament"]
GameType = Literal["singles", "doubles"]
PlayerStatus = Literal["registered", "checked_in", "checked_out"]


class PlaySessionCreate(BaseModel):
    name: str
    mode: SessionMode = "usual"
    game_type: GameType = "doubles"
    return_to_queue: bool = True
    announcements: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_time_range(self):
        if self.starts_at and self.ends_at and self.ends_at < self.starts_at:
            raise ValueError("ends_at must be >= starts_at")
        return self


class PlaySessionUpdate(BaseModel):
    name: Optional[str] = None
    mode: Optional[SessionMode] = None
    game_type: Optional[GameType] = None
    return_to_queue: Optional[bool] = None
    announcements: Optional[str] = None


class CourtSessionResponse(BaseModel):
    id: int
    court_id: int
    court_name: str
    status: str
    current_match_id: Optional[int] = None


class PlaySessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    mode: str
    game_type: str
    status: str
    return_to_queue: bool
    announcements: Optional[str] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime


class PlaySessionDetail(PlaySessionResponse):
    court_sessions: List[CourtSessionResponse] = []


class SessionPlayerUpdate(BaseModel):
    status: PlayerStatus


class SessionPlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    full_name: str
    team_id: Optional[int] = None
    status: str
    last_played_at: Optional[datetime] = None
    games_played: int
    wins: int
    losses: int


class PlayerRankingResponse(BaseModel):
    rank: int
    player_id: int
    full_name: str
    games_played: int
    wins: int
    losses: int
    win_pct: float


class RankingsResponse(BaseModel):
    session_id: int
    total_players: int
    players: List[PlayerRankingResponse]


class TeamStandingResponse(BaseModel):
    rank: int
    team_id: int
    name: str
    color: Optional[str] = None
    games_played: int
    wins: int
    losses: int
    points: int
    win_pct: float


class TeamStatsResponse(BaseModel):
    session_id: int
    scope: str
    mode: str
    total_teams: int
    teams: List[TeamStandingResponse]
    champion: Optional[TeamStandingResponse] = None


def get_play_session_or_404(session: Session, session_id: int) -> PlaySession:
    play_session = session.get(PlaySession, session_id)
    if not play_session:
        raise HTTPException(status_code=404, detail="Session not found")
    return play_session


def _detail(session: Session, play_session: PlaySession) -> PlaySessionDetail:
    rows = session.exec(
        select(CourtSession, Court)
        .join(Court, Court.id == CourtSession.court_id)
        .where(CourtSession.session_id == play_session.id, Court.active == True)  # noqa: E712
        .order_by(Court.id)
    ).all()
    return PlaySessionDetail(
        **PlaySessionResponse.model_validate(play_session).model_dump(),
        court_sessions=[
            CourtSessionResponse(
                id=cs.id,
                court_id=court.id,
                court_name=court.name,
                status=cs.status,
                current_match_id=cs.current_match_id,
            )
            for cs, court in rows
        ],
    )


def _session_player_response(sp: SessionPlayer, player: Player) -> SessionPlayerResponse:
    return SessionPlayerResponse(
        player_id=player.id,
        full_name=player.full_name,
        team_id=player.team_id,
        status=sp.status,
        last_played_at=sp.last_played_at,
        games_played=sp.games_played,
        wins=sp.wins,
        losses=sp.losses,
    )


# ============================================================================
# Session lifecycle
# ============================================================================


@router.post("/sessions", response_model=PlaySessionResponse, status_code=201)
def create_play_session(payload: PlaySessionCreate, session: Session = Depends(get_session)):
    play_session = PlaySession(**payload.model_dump(), status="draft")
    session.add(play_session)
    session.commit()
    session.refresh(play_session)
    return play_session


@router.get("/sessions", response_model=List[PlaySessionResponse])
def list_play_sessions(
    status: Optional[str] = Query(None, description="Filter by draft/open/closed"),
    session: Session = Depends(get_session),
):
    query = select(PlaySession)
    if status:
        query = query.where(PlaySession.status == status)
    return session.exec(query.order_by(PlaySession.created_at.desc(), PlaySession.id.desc())).all()  # type: ignore[union-attr]


@router.get("/sessions/active", response_model=Optional[PlaySessionDetail])
def get_active_play_session(session: Session = Depends(get_session)):
    """Most recently created open session, or null."""
    play_session = session.exec(
        select(PlaySession)
        .where(PlaySession.status == "open")
        .order_by(PlaySession.created_at.desc(), PlaySession.id.desc())  # type: ignore[union-attr]
    ).first()
    if not play_session:
        return None
    return _detail(session, play_session)


@router.get("/sessions/{session_id}", response_model=PlaySessionDetail)
def get_play_session(session_id: int, session: Session = Depends(get_session)):
    return _detail(session, get_play_session_or_404(session, session_id))


@router.patch("/sessions/{session_id}", response_model=PlaySessionResponse)
def update_play_session(session_id: int, payload: PlaySessionUpdate, session: Session = Depends(get_session)):
    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    play_session = get_play_session_or_404(session, session_id)
    for key, value in updates.items():
        setattr(play_session, key, value)
    session.add(play_session)
    session.commit()
    session.refresh(play_session)
    return play_session


@router.post("/sessions/{session_id}/open", response_model=PlaySessionDetail)
def open_play_session(session_id: int, session: Session = Depends(get_session)):
    """Open the session and give it one court slot per active court. Idempotent."""
    play_session = get_play_session_or_404(session, session_id)
    play_session.status = "open"
    play_session.closed_at = None
    session.add(play_session)

    existing = {
        cs.court_id
        for cs in session.exec(select(CourtSession).where(CourtSession.session_id == session_id)).all()
    }
    for court in session.exec(select(Court).where(Court.active == True)).all():  # noqa: E712
        if court.id not in existing:
            session.add(CourtSession(session_id=session_id, court_id=court.id, status="available"))

    session.commit()
    session.refresh(play_session)
    return _detail(session, play_session)


@router.post("/sessions/{session_id}/close", response_model=PlaySessionResponse)
def close_play_session(session_id: int, session: Session = Depends(get_session)):
    play_session = get_play_session_or_404(session, session_id)
    play_session.status = "closed"
    play_session.closed_at = datetime.utcnow()
    session.add(play_session)
    session.commit()
    session.refresh(play_session)
    return play_session


@router.delete("/sessions/{session_id}", status_code=204)
def delete_play_session(session_id: int, session: Session = Depends(get_session)):
    play_session = get_play_session_or_404(session, session_id)
    if play_session.status == "open":
        raise HTTPException(status_code=409, detail="Close the session before deleting it")
    session.delete(play_session)
    session.commit()
    return None


# ============================================================================
# Session players
# ============================================================================


@router.get("/sessions/{session_id}/players", response_model=List[SessionPlayerResponse])
def list_session_players(session_id: int, session: Session = Depends(get_session)):
    get_play_session_or_404(session, session_id)
    rows = session.exec(
        select(SessionPlayer, Player)
        .join(Player, Player.id == SessionPlayer.player_id)
        .where(SessionPlayer.session_id == session_id)
        .order_by(Player.full_name, Player.id)
    ).all()
    return [_session_player_response(sp, player) for sp, player in rows]


@router.put("/sessions/{session_id}/players/{player_id}", response_model=SessionPlayerResponse)
def set_session_player_status(
    session_id: int,
    player_id: int,
    payload: SessionPlayerUpdate,
    session: Session = Depends(get_session),
):
    """Register, check in or check out a player. Creates the record on first use.

    Only checked-in players can be matched; a player who is on court
    cannot change status until the match finishes.
    """
    get_play_session_or_404(session, session_id)
    player = session.get(Player, player_id)
    if not player:
        raise HTTPException(status_code=404, detail="Player not found")

    sp = session.exec(
        select(SessionPlayer).where(SessionPlayer.session_id == session_id, SessionPlayer.player_id == player_id)
    ).first()
    if sp is None:
        sp = SessionPlayer(session_id=session_id, player_id=player_id)
    elif sp.status == "playing":
        raise HTTPException(status_code=409, detail="Player is on court")

    sp.status = payload.status
    session.add(sp)
    session.commit()
    session.refresh(sp)
    return _session_player_response(sp, player)


# ============================================================================
# Standings
# ============================================================================


@router.get("/sessions/{session_id}/rankings", response_model=RankingsResponse)
def get_rankings(session_id: int, session: Session = Depends(get_session)):
    get_play_session_or_404(session, session_id)
    ranked = rank_players(session, session_id)
    return RankingsResponse(
        session_id=session_id,
        total_players=len(ranked),
        players=[
            PlayerRankingResponse(
                rank=r.rank,
                player_id=r.player_id,
                full_name=r.full_name,
                games_played=r.games_played,
                wins=r.wins,
                losses=r.losses,
                win_pct=r.win_pct,
            )
            for r in ranked
        ],
    )


@router.get("/sessions/{session_id}/team-stats", response_model=TeamStatsResponse)
def get_team_stats(
    session_id: int,
    scope: str = Query("session", description="'session' or 'all' tournament sessions"),
    session: Session = Depends(get_session),
):
    play_session = get_play_session_or_404(session, session_id)
    all_scope = scope.lower() == "all"
    rows = [
        TeamStandingResponse(
            rank=t.rank,
            team_id=t.team_id,
            name=t.name,
            color=t.color,
            games_played=t.games_played,
            wins=t.wins,
            losses=t.losses,
            points=t.points,
            win_pct=t.win_pct,
        )
        for t in team_standings(session, play_session, all_sessions=all_scope)
    ]
    return TeamStatsResponse(
        session_id=session_id,
        scope="all" if all_scope else "session",
        mode=play_session.mode,
        total_teams=len(rows),
        teams=rows,
        champion=rows[0] if rows else None,
    )
