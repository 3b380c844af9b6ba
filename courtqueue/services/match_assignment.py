"""
Court assignment and match completion.

assign_match_to_court() is the only writer that consumes a suggestion:
both queue entries leave "queued" through one conditional UPDATE, so a
suggestion that went stale between read and commit is rejected instead
of double-booking players.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update
from sqlmodel import Session, select

from courtqueue.models.court import CourtSession
from courtqueue.models.match import Match, MatchParticipant
from courtqueue.models.play_session import PlaySession
from courtqueue.models.player import Player
from courtqueue.models.queue_entry import QueueEntry, QueueEntryPlayer
from courtqueue.models.session_player import SessionPlayer
from courtqueue.services.match_suggester import (
    ENTRY_QUEUED,
    MODE_TOURNAMENT,
    PLAYER_CHECKED_IN,
    EntryPlayer,
    EntryTeamCache,
    QueueEntrySnapshot,
)
from courtqueue.services.queue_snapshot import suggest_match

logger = logging.getLogger(__name__)

ENTRY_ASSIGNED = "assigned"
COURT_AVAILABLE = "available"
COURT_IN_USE = "in_use"
MATCH_IN_PROGRESS = "in_progress"
MATCH_ENDED = "ended"
PLAYER_PLAYING = "playing"


class AssignmentError(Exception):
    """Raised when a pairing cannot be put on a court"""

    pass


class NoSuggestionAvailableError(AssignmentError):
    pass


class CourtUnavailableError(AssignmentError):
    pass


class StaleSuggestionError(AssignmentError):
    """One of the entries left the queue after the suggestion was read"""

    pass


class IneligibleEntriesError(AssignmentError):
    """The chosen entries cannot face each other right now"""

    pass


class MatchStateError(Exception):
    pass


def next_queue_position(session: Session, session_id: int) -> int:
    current = session.exec(
        select(func.max(QueueEntry.position)).where(QueueEntry.session_id == session_id)
    ).one()
    return (current or 0) + 1


def queued_player_ids(session: Session, session_id: int, player_ids: List[int]) -> List[int]:
    """Those of *player_ids* already sitting in a queued entry of the session."""
    if not player_ids:
        return []
    rows = session.exec(
        select(QueueEntryPlayer.player_id)
        .join(QueueEntry, QueueEntry.id == QueueEntryPlayer.entry_id)
        .where(
            QueueEntry.session_id == session_id,
            QueueEntry.status == ENTRY_QUEUED,
            QueueEntryPlayer.player_id.in_(player_ids),  # type: ignore[attr-defined]
        )
    ).all()
    return sorted(set(rows))


def _set_player_status(session: Session, session_id: int, player_ids: List[int], status: str) -> List[SessionPlayer]:
    records = session.exec(
        select(SessionPlayer).where(
            SessionPlayer.session_id == session_id,
            SessionPlayer.player_id.in_(player_ids),  # type: ignore[attr-defined]
        )
    ).all()
    for sp in records:
        sp.status = status
        session.add(sp)
    return list(records)


def _check_entries_can_play(session: Session, play_session: PlaySession, entries: List[QueueEntry]) -> None:
    """Hold hand-picked entries to the same rules the suggester applies.

    No shared player, every player checked in (not on another court), and
    in tournament sessions two entries that resolve to different teams.
    """
    sides = [[link.player_id for link in entry.players] for entry in entries]
    shared = set(sides[0]) & set(sides[1])
    if shared:
        raise IneligibleEntriesError(f"Queue entries share player(s): {sorted(shared)}")

    player_ids = sides[0] + sides[1]
    statuses = {
        sp.player_id: sp.status
        for sp in session.exec(
            select(SessionPlayer).where(
                SessionPlayer.session_id == play_session.id,
                SessionPlayer.player_id.in_(player_ids),  # type: ignore[attr-defined]
            )
        ).all()
    }
    not_ready = [pid for pid in player_ids if statuses.get(pid) != PLAYER_CHECKED_IN]
    if not_ready:
        raise IneligibleEntriesError(f"Player(s) not checked in: {not_ready}")

    if play_session.mode != MODE_TOURNAMENT:
        return

    team_by_player = {
        p.id: p.team_id
        for p in session.exec(select(Player).where(Player.id.in_(player_ids))).all()  # type: ignore[union-attr]
    }
    teams = EntryTeamCache()
    resolved = [
        teams.resolve(
            QueueEntrySnapshot(
                entry_id=entry.id,
                match_type=entry.type,
                position=entry.position,
                created_at=entry.created_at,
                players=[EntryPlayer(player_id=pid, team_id=team_by_player.get(pid)) for pid in side],
                status=entry.status,
                manual_order=entry.manual_order,
            )
        )
        for entry, side in zip(entries, sides)
    ]
    if None in resolved or resolved[0] == resolved[1]:
        raise IneligibleEntriesError("Tournament entries must belong to two different teams")


def assign_match_to_court(
    session: Session,
    play_session: PlaySession,
    court_session: CourtSession,
    entry_ids: Optional[List[int]] = None,
    now: Optional[datetime] = None,
) -> Match:
    """Create a match on *court_session* from two queue entries.

    Without explicit *entry_ids* the suggester picks them for the
    session's game type. Commits on success; rolls back and raises
    StaleSuggestionError when either entry is no longer queued.
    """
    if court_session.session_id != play_session.id:
        raise AssignmentError("Court is not part of this session")
    if court_session.status != COURT_AVAILABLE:
        raise CourtUnavailableError(f"Court {court_session.court_id} is {court_session.status}")

    if entry_ids is None:
        suggestion = suggest_match(session, play_session.id, play_session.game_type, now)
        if suggestion is None:
            raise NoSuggestionAvailableError("No eligible pairing in the queue")
        entry_ids = suggestion.entry_ids

    if len(entry_ids) != 2 or entry_ids[0] == entry_ids[1]:
        raise AssignmentError("Exactly two distinct queue entries are required")

    entries: List[QueueEntry] = []
    for entry_id in entry_ids:
        entry = session.get(QueueEntry, entry_id)
        if not entry or entry.session_id != play_session.id:
            raise AssignmentError(f"Queue entry {entry_id} not found in session")
        entries.append(entry)
    if entries[0].type != entries[1].type:
        raise AssignmentError("Queue entries are for different match types")
    _check_entries_can_play(session, play_session, entries)

    result = session.exec(
        update(QueueEntry)
        .where(
            QueueEntry.id.in_(entry_ids),  # type: ignore[attr-defined]
            QueueEntry.status == ENTRY_QUEUED,
        )
        .values(status=ENTRY_ASSIGNED)
    )
    if result.rowcount != 2:
        session.rollback()
        logger.warning(
            "Session %s: stale suggestion %s rejected (%s of 2 entries still queued)",
            play_session.id,
            entry_ids,
            result.rowcount,
        )
        raise StaleSuggestionError("Queue changed since the suggestion was made")

    started_at = now or datetime.utcnow()
    match = Match(
        session_id=play_session.id,
        court_id=court_session.court_id,
        match_type=entries[0].type,
        status=MATCH_IN_PROGRESS,
        entry_ids=list(entry_ids),
        started_at=started_at,
    )
    session.add(match)
    session.flush()

    player_ids: List[int] = []
    for team_number, entry in enumerate(entries, start=1):
        for link in entry.players:
            player = session.get(Player, link.player_id)
            session.add(
                MatchParticipant(
                    match_id=match.id,
                    player_id=link.player_id,
                    team_number=team_number,
                    team_id=player.team_id if player else None,
                )
            )
            player_ids.append(link.player_id)

    _set_player_status(session, play_session.id, player_ids, PLAYER_PLAYING)

    court_session.status = COURT_IN_USE
    court_session.current_match_id = match.id
    court_session.updated_at = started_at
    session.add(court_session)

    session.commit()
    session.refresh(match)
    logger.info(
        "Session %s: match %s on court %s from entries %s",
        play_session.id,
        match.id,
        court_session.court_id,
        entry_ids,
    )
    return match


def finish_match(
    session: Session, match: Match, winner_team: Optional[int], now: Optional[datetime] = None
) -> Match:
    """End *match*, free its court and update player counters.

    Players go back to checked_in with last_played_at = now. When the
    session returns players to the queue, each consumed entry is queued
    again at the tail with the same players, unless one of them already
    sits in a queued entry.
    """
    if match.status != MATCH_IN_PROGRESS:
        raise MatchStateError(f"Match {match.id} is already {match.status}")
    if winner_team not in (None, 1, 2):
        raise MatchStateError("winner_team must be 1, 2 or null")

    ended_at = now or datetime.utcnow()
    match.status = MATCH_ENDED
    match.winner_team = winner_team
    match.ended_at = ended_at
    session.add(match)

    sides = {1: [], 2: []}
    for participant in match.participants:
        sides[participant.team_number].append(participant.player_id)

    for team_number, player_ids in sides.items():
        records = _set_player_status(session, match.session_id, player_ids, PLAYER_CHECKED_IN)
        for sp in records:
            sp.games_played += 1
            if winner_team == team_number:
                sp.wins += 1
            elif winner_team is not None:
                sp.losses += 1
            sp.last_played_at = ended_at

    court_session = session.exec(
        select(CourtSession).where(
            CourtSession.session_id == match.session_id,
            CourtSession.current_match_id == match.id,
        )
    ).first()
    if court_session:
        court_session.status = COURT_AVAILABLE
        court_session.current_match_id = None
        court_session.updated_at = ended_at
        session.add(court_session)

    play_session = session.get(PlaySession, match.session_id)
    requeued = 0
    if play_session and play_session.return_to_queue and play_session.status == "open":
        position = next_queue_position(session, match.session_id)
        for entry_id in match.entry_ids or []:
            old = session.get(QueueEntry, entry_id)
            if not old:
                continue
            # Players may have queued again while on court
            already = queued_player_ids(session, old.session_id, [link.player_id for link in old.players])
            if already:
                logger.info("Match %s: entry %s not re-queued, %s already queued", match.id, entry_id, already)
                continue
            entry = QueueEntry(
                session_id=old.session_id,
                type=old.type,
                position=position,
                created_at=ended_at,
            )
            entry.players = [
                QueueEntryPlayer(player_id=link.player_id, slot=link.slot) for link in old.players
            ]
            session.add(entry)
            position += 1
            requeued += 1

    session.commit()
    session.refresh(match)
    logger.info("Match %s finished (winner_team=%s, requeued=%d)", match.id, winner_team, requeued)
    return match
