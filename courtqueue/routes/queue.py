"""
Queue API: enqueue, reorder, cancel, "who's next" and court assignment.

Suggestion is read-only. Assignment consumes the suggested entries with a
conditional dequeue; a stale suggestion comes back as 409.
"""
import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from sqlmodel import Session, select

from courtqueue.database import get_session
from courtqueue.models.court import CourtSession
from courtqueue.models.player import Player
from courtqueue.models.queue_entry import QueueEntry, QueueEntryPlayer
from courtqueue.models.session_player import SessionPlayer
from courtqueue.routes.matches import MatchResponse, match_response
from courtqueue.routes.sessions import get_play_session_or_404
from courtqueue.services.match_assignment import (
    AssignmentError,
    CourtUnavailableError,
    IneligibleEntriesError,
    NoSuggestionAvailableError,
    StaleSuggestionError,
    assign_match_to_court,
    next_queue_position,
    queued_player_ids,
)
from courtqueue.services.match_suggester import ENTRY_QUEUED, NoSuggestion
from courtqueue.services.queue_snapshot import explain_suggestion

logger = logging.getLogger(__name__)

router = APIRouter()

MatchType = Literal["singles", "doubles"]
PLAYERS_PER_ENTRY = {"singles": 1, "doubles": 2}


class EnqueueRequest(BaseModel):
    player_ids: List[int]
    type: Optional[MatchType] = None

    @field_validator("player_ids")
    @classmethod
    def validate_player_ids(cls, v):
        if not 1 <= len(v) <= 2:
            raise ValueError("an entry has one or two players")
        if len(set(v)) != len(v):
            raise ValueError("player_ids must be distinct")
        return v


class ReorderRequest(BaseModel):
    position: int


class AssignRequest(BaseModel):
    entry_ids: List[int]


class QueuePlayer(BaseModel):
    player_id: int
    full_name: str
    team_id: Optional[int] = None


class QueueEntryResponse(BaseModel):
    id: int
    session_id: int
    type: str
    status: str
    position: int
    manual_order: bool
    created_at: datetime
    players: List[QueuePlayer]


class SuggestionResponse(BaseModel):
    match_type: str
    teams: List[List[int]]
    entry_ids: List[int]


def _entry_response(session: Session, entry: QueueEntry) -> QueueEntryResponse:
    players = []
    for link in entry.players:
        player = session.get(Player, link.player_id)
        players.append(
            QueuePlayer(
                player_id=link.player_id,
                full_name=player.full_name if player else "",
                team_id=player.team_id if player else None,
            )
        )
    return QueueEntryResponse(
        id=entry.id,
        session_id=entry.session_id,
        type=entry.type,
        status=entry.status,
        position=entry.position,
        manual_order=entry.manual_order,
        created_at=entry.created_at,
        players=players,
    )


def _get_entry_or_404(session: Session, entry_id: int) -> QueueEntry:
    entry = session.get(QueueEntry, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Queue entry not found")
    return entry


# ============================================================================
# Queue management
# ============================================================================


@router.post("/sessions/{session_id}/queue", response_model=QueueEntryResponse, status_code=201)
def enqueue(session_id: int, payload: EnqueueRequest, session: Session = Depends(get_session)):
    """
    Add a singles or doubles entry at the tail of the queue.

    Rules:
    - session must be open
    - singles takes exactly one player, doubles exactly two
    - every player must be registered in the session
    - a player can sit in at most one queued entry per session
    """
    play_session = get_play_session_or_404(session, session_id)
    if play_session.status != "open":
        raise HTTPException(status_code=409, detail="Session is not open")

    match_type = payload.type or play_session.game_type
    if len(payload.player_ids) != PLAYERS_PER_ENTRY[match_type]:
        raise HTTPException(
            status_code=422,
            detail=f"{match_type} entries need {PLAYERS_PER_ENTRY[match_type]} player(s)",
        )

    registered = session.exec(
        select(SessionPlayer.player_id).where(
            SessionPlayer.session_id == session_id,
            SessionPlayer.player_id.in_(payload.player_ids),  # type: ignore[attr-defined]
        )
    ).all()
    if len(set(registered)) != len(payload.player_ids):
        raise HTTPException(status_code=404, detail="Player not registered in session")

    already_queued = queued_player_ids(session, session_id, payload.player_ids)
    if already_queued:
        raise HTTPException(status_code=409, detail=f"Player(s) already queued: {already_queued}")

    entry = QueueEntry(
        session_id=session_id,
        type=match_type,
        position=next_queue_position(session, session_id),
    )
    entry.players = [QueueEntryPlayer(player_id=pid, slot=slot) for slot, pid in enumerate(payload.player_ids)]
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return _entry_response(session, entry)


@router.get("/sessions/{session_id}/queue", response_model=List[QueueEntryResponse])
def list_queue(
    session_id: int,
    type: Optional[MatchType] = Query(None, description="singles or doubles"),
    session: Session = Depends(get_session),
):
    """Queued entries in position order."""
    get_play_session_or_404(session, session_id)
    query = select(QueueEntry).where(QueueEntry.session_id == session_id, QueueEntry.status == ENTRY_QUEUED)
    if type:
        query = query.where(QueueEntry.type == type)
    entries = session.exec(query.order_by(QueueEntry.position, QueueEntry.id)).all()
    return [_entry_response(session, e) for e in entries]


@router.patch("/queue/{entry_id}", response_model=QueueEntryResponse)
def reorder_entry(entry_id: int, payload: ReorderRequest, session: Session = Depends(get_session)):
    """Move an entry and pin it. Any pinned entry switches the session to position order."""
    entry = _get_entry_or_404(session, entry_id)
    if entry.status != ENTRY_QUEUED:
        raise HTTPException(status_code=409, detail="Only queued entries can be reordered")
    entry.position = payload.position
    entry.manual_order = True
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return _entry_response(session, entry)


@router.post("/sessions/{session_id}/queue/clear-manual-order", response_model=List[QueueEntryResponse])
def clear_manual_order(session_id: int, session: Session = Depends(get_session)):
    """Unpin every queued entry so fairness ordering applies again."""
    get_play_session_or_404(session, session_id)
    entries = session.exec(
        select(QueueEntry)
        .where(QueueEntry.session_id == session_id, QueueEntry.status == ENTRY_QUEUED)
        .order_by(QueueEntry.position, QueueEntry.id)
    ).all()
    for entry in entries:
        entry.manual_order = False
        session.add(entry)
    session.commit()
    return [_entry_response(session, e) for e in entries]


@router.delete("/queue/{entry_id}", response_model=QueueEntryResponse)
def cancel_entry(entry_id: int, session: Session = Depends(get_session)):
    entry = _get_entry_or_404(session, entry_id)
    if entry.status != ENTRY_QUEUED:
        raise HTTPException(status_code=409, detail=f"Queue entry is already {entry.status}")
    entry.status = "cancelled"
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return _entry_response(session, entry)


# ============================================================================
# Suggestion and assignment
# ============================================================================


@router.get("/sessions/{session_id}/queue/suggest", response_model=Optional[SuggestionResponse])
def suggest_next(
    session_id: int,
    type: Optional[MatchType] = Query(None, description="Defaults to the session's game type"),
    session: Session = Depends(get_session),
):
    """Who plays next. null when no pairing is possible."""
    play_session = get_play_session_or_404(session, session_id)
    match_type = type or play_session.game_type

    outcome = explain_suggestion(session, session_id, match_type)
    if isinstance(outcome, NoSuggestion):
        logger.debug("Session %s: no %s suggestion (%s)", session_id, match_type, outcome.reason.value)
        return None
    return SuggestionResponse(
        match_type=outcome.match_type,
        teams=outcome.teams,
        entry_ids=outcome.entry_ids,
    )


@router.post(
    "/sessions/{session_id}/courts/{court_id}/assign",
    response_model=MatchResponse,
    status_code=201,
)
def assign_court(
    session_id: int,
    court_id: int,
    payload: Optional[AssignRequest] = None,
    session: Session = Depends(get_session),
):
    """
    Start a match on a free court.

    With no body the current suggestion is used; otherwise the two given
    entries. Either way the entries must still be queued at commit time.
    """
    play_session = get_play_session_or_404(session, session_id)
    if play_session.status != "open":
        raise HTTPException(status_code=409, detail="Session is not open")

    court_session = session.exec(
        select(CourtSession).where(CourtSession.session_id == session_id, CourtSession.court_id == court_id)
    ).first()
    if not court_session:
        raise HTTPException(status_code=404, detail="Court not found in session")

    try:
        match = assign_match_to_court(
            session,
            play_session,
            court_session,
            entry_ids=payload.entry_ids if payload else None,
        )
    except (
        CourtUnavailableError,
        IneligibleEntriesError,
        NoSuggestionAvailableError,
        StaleSuggestionError,
    ) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except AssignmentError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return match_response(match)
