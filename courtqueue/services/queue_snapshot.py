"""
Reads the suggestion snapshot for one session out of the database and
hands it to the match suggester. Read-only.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from sqlmodel import Session, select

from courtqueue.models.play_session import PlaySession
from courtqueue.models.player import Player
from courtqueue.models.queue_entry import QueueEntry, QueueEntryPlayer
from courtqueue.models.session_player import SessionPlayer
from courtqueue.services.match_suggester import (
    ENTRY_QUEUED,
    EntryPlayer,
    MatchSuggestion,
    NoSuggestion,
    QueueEntrySnapshot,
    SessionPlayerStatus,
    SuggestionOutcome,
    SuggestionSnapshot,
    evaluate_suggestion,
)

logger = logging.getLogger(__name__)


def load_suggestion_snapshot(session: Session, session_id: int, match_type: str) -> Optional[SuggestionSnapshot]:
    """Session mode, queued entries of *match_type* with players, and session-player records.

    Returns None when the session does not exist.
    """
    play_session = session.get(PlaySession, session_id)
    if not play_session:
        return None

    entries = session.exec(
        select(QueueEntry)
        .where(
            QueueEntry.session_id == session_id,
            QueueEntry.status == ENTRY_QUEUED,
            QueueEntry.type == match_type,
        )
        .order_by(QueueEntry.position, QueueEntry.id)
    ).all()

    players_by_entry: Dict[int, List[EntryPlayer]] = defaultdict(list)
    entry_ids = [e.id for e in entries]
    if entry_ids:
        rows = session.exec(
            select(QueueEntryPlayer, Player)
            .join(Player, Player.id == QueueEntryPlayer.player_id)
            .where(QueueEntryPlayer.entry_id.in_(entry_ids))  # type: ignore[attr-defined]
            .order_by(QueueEntryPlayer.entry_id, QueueEntryPlayer.slot)
        ).all()
        for link, player in rows:
            players_by_entry[link.entry_id].append(EntryPlayer(player_id=player.id, team_id=player.team_id))

    session_players = session.exec(select(SessionPlayer).where(SessionPlayer.session_id == session_id)).all()

    return SuggestionSnapshot(
        mode=play_session.mode,
        entries=[
            QueueEntrySnapshot(
                entry_id=e.id,
                match_type=e.type,
                position=e.position,
                created_at=e.created_at,
                players=players_by_entry.get(e.id, []),
                status=e.status,
                manual_order=e.manual_order,
            )
            for e in entries
        ],
        session_players={
            sp.player_id: SessionPlayerStatus(status=sp.status, last_played_at=sp.last_played_at)
            for sp in session_players
        },
    )


def explain_suggestion(
    session: Session, session_id: int, match_type: str, now: Optional[datetime] = None
) -> SuggestionOutcome:
    """Suggestion or the reason there is none."""
    snapshot = load_suggestion_snapshot(session, session_id, match_type)
    return evaluate_suggestion(snapshot, match_type, now)


def suggest_match(
    session: Session, session_id: int, match_type: str, now: Optional[datetime] = None
) -> Optional[MatchSuggestion]:
    """Next pairing for the session, or None."""
    outcome = explain_suggestion(session, session_id, match_type, now)
    if isinstance(outcome, NoSuggestion):
        logger.debug("Session %s: no %s suggestion (%s)", session_id, match_type, outcome.reason.value)
        return None
    logger.debug("Session %s: suggested entries %s", session_id, outcome.entry_ids)
    return outcome
