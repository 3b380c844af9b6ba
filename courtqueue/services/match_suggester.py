"""
Match Suggester: picks the next two queue entries for a free court.

One pass, no writes:
  1. candidates: queued entries of the requested type, by position
  2. eligibility: every player checked in; tournament entries need one team
  3. ordering: position order if any entry is pinned, else fairness desc
  4. pairing: first two entries, or first cross-team pair in tournament mode

Every "cannot suggest" path ends in NoSuggestion(reason); the public
suggest_next_match() erases the reason to None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

# Maximum recency priority: an entry whose players never played outranks
# any realistic wait.
NEVER_PLAYED_MINUTES = 999_999.0

MODE_USUAL = "usual"
MODE_TOURNAMENT = "tournament"

ENTRY_QUEUED = "queued"
PLAYER_CHECKED_IN = "checked_in"


@dataclass(frozen=True)
class EntryPlayer:
    player_id: int
    team_id: Optional[int] = None


@dataclass
class QueueEntrySnapshot:
    """One queued request to play, as read from the queue."""
    entry_id: int
    match_type: str
    position: int
    created_at: datetime
    players: List[EntryPlayer] = field(default_factory=list)
    status: str = ENTRY_QUEUED
    manual_order: bool = False

    @property
    def player_ids(self) -> List[int]:
        return [p.player_id for p in self.players]


@dataclass(frozen=True)
class SessionPlayerStatus:
    status: str
    last_played_at: Optional[datetime] = None


@dataclass
class SuggestionSnapshot:
    mode: str
    entries: List[QueueEntrySnapshot]
    session_players: Dict[int, SessionPlayerStatus]

    @property
    def is_tournament(self) -> bool:
        return self.mode == MODE_TOURNAMENT


@dataclass
class MatchSuggestion:
    match_type: str
    teams: List[List[int]]
    entry_ids: List[int]


class NoSuggestionReason(str, Enum):
    SESSION_NOT_FOUND = "session_not_found"
    NOT_ENOUGH_QUEUED = "not_enough_queued"
    NOT_ENOUGH_ELIGIBLE = "not_enough_eligible"
    NO_CROSS_TEAM_PAIR = "no_cross_team_pair"


@dataclass(frozen=True)
class NoSuggestion:
    reason: NoSuggestionReason


SuggestionOutcome = Union[MatchSuggestion, NoSuggestion]


# ============================================================================
# Fairness scoring
# ============================================================================


def minutes_between(later: datetime, earlier: datetime) -> float:
    """Minutes from *earlier* to *later*, never negative."""
    return max(0.0, (later - earlier).total_seconds() / 60.0)


def fairness_score(now: datetime, queued_at: datetime, last_played_at: Optional[datetime]) -> float:
    """waitMinutes + sincePlayedMinutes; higher means more deserving."""
    wait = minutes_between(now, queued_at)
    if last_played_at is None:
        since_played = NEVER_PLAYED_MINUTES
    else:
        since_played = minutes_between(now, last_played_at)
    return wait + since_played


def entry_last_played_at(
    entry: QueueEntrySnapshot, session_players: Dict[int, SessionPlayerStatus]
) -> Optional[datetime]:
    """Earliest known last_played_at across the entry's players, or None."""
    times = []
    for p in entry.players:
        record = session_players.get(p.player_id)
        if record is not None and record.last_played_at is not None:
            times.append(record.last_played_at)
    return min(times) if times else None


def entry_fairness_score(
    entry: QueueEntrySnapshot, session_players: Dict[int, SessionPlayerStatus], now: datetime
) -> float:
    return fairness_score(now, entry.created_at, entry_last_played_at(entry, session_players))


# ============================================================================
# Eligibility
# ============================================================================


class EntryTeamCache:
    """Per-call memo of entry -> resolved team id.

    An entry resolves to a team only when every player has a team and
    they all share it; otherwise it resolves to None.
    """

    def __init__(self) -> None:
        self._by_entry: Dict[int, Optional[int]] = {}

    def resolve(self, entry: QueueEntrySnapshot) -> Optional[int]:
        if entry.entry_id in self._by_entry:
            return self._by_entry[entry.entry_id]
        team_ids = [p.team_id for p in entry.players]
        if not team_ids or any(t is None for t in team_ids) or len(set(team_ids)) != 1:
            resolved = None
        else:
            resolved = team_ids[0]
        self._by_entry[entry.entry_id] = resolved
        return resolved


def all_checked_in(entry: QueueEntrySnapshot, session_players: Dict[int, SessionPlayerStatus]) -> bool:
    for p in entry.players:
        record = session_players.get(p.player_id)
        if record is None or record.status != PLAYER_CHECKED_IN:
            return False
    return True


def filter_eligible(
    entries: Sequence[QueueEntrySnapshot],
    session_players: Dict[int, SessionPlayerStatus],
    tournament: bool,
    teams: EntryTeamCache,
) -> List[QueueEntrySnapshot]:
    eligible = []
    for entry in entries:
        if not all_checked_in(entry, session_players):
            continue
        if tournament and teams.resolve(entry) is None:
            continue
        eligible.append(entry)
    return eligible


# ============================================================================
# Ordering and pairing
# ============================================================================


def order_entries(
    entries: Sequence[QueueEntrySnapshot],
    session_players: Dict[int, SessionPlayerStatus],
    now: datetime,
) -> Tuple[List[QueueEntrySnapshot], bool]:
    """Sort eligible entries for pairing.

    Returns (sorted_entries, manual). Manual mode kicks in when any entry
    is pinned and orders everything by position; otherwise entries go by
    fairness score descending, earlier created_at first on ties.
    """
    if any(e.manual_order for e in entries):
        return sorted(entries, key=lambda e: e.position), True

    scores = {e.entry_id: entry_fairness_score(e, session_players, now) for e in entries}
    ordered = sorted(entries, key=lambda e: (-scores[e.entry_id], e.created_at))
    return ordered, False


def pick_cross_team_pair(
    ordered: Sequence[QueueEntrySnapshot], teams: EntryTeamCache
) -> Optional[Tuple[QueueEntrySnapshot, QueueEntrySnapshot]]:
    """First (i, j), i < j, whose resolved teams are both set and differ.

    Best-first, first-feasible: the outer entry is kept as soon as any
    later entry can face it.
    """
    for i, candidate in enumerate(ordered):
        team_a = teams.resolve(candidate)
        if team_a is None:
            continue
        for opponent in ordered[i + 1:]:
            team_b = teams.resolve(opponent)
            if team_b is None:
                continue
            if team_a != team_b:
                return candidate, opponent
    return None


def evaluate_suggestion(
    snapshot: Optional[SuggestionSnapshot],
    match_type: str,
    now: Optional[datetime] = None,
) -> SuggestionOutcome:
    """Run the full pipeline and return either a suggestion or the reason there is none."""
    if snapshot is None:
        return NoSuggestion(NoSuggestionReason.SESSION_NOT_FOUND)

    candidates = sorted(
        (e for e in snapshot.entries if e.status == ENTRY_QUEUED and e.match_type == match_type),
        key=lambda e: e.position,
    )
    if len(candidates) < 2:
        return NoSuggestion(NoSuggestionReason.NOT_ENOUGH_QUEUED)

    teams = EntryTeamCache()
    tournament = snapshot.is_tournament
    eligible = filter_eligible(candidates, snapshot.session_players, tournament, teams)
    if len(eligible) < 2:
        return NoSuggestion(NoSuggestionReason.NOT_ENOUGH_ELIGIBLE)

    if now is None:
        now = datetime.utcnow()
    ordered, _manual = order_entries(eligible, snapshot.session_players, now)

    if tournament:
        pair = pick_cross_team_pair(ordered, teams)
        if pair is None:
            return NoSuggestion(NoSuggestionReason.NO_CROSS_TEAM_PAIR)
        first, second = pair
    else:
        first, second = ordered[0], ordered[1]

    return MatchSuggestion(
        match_type=match_type,
        teams=[first.player_ids, second.player_ids],
        entry_ids=[first.entry_id, second.entry_id],
    )


def suggest_next_match(
    snapshot: Optional[SuggestionSnapshot],
    match_type: str,
    now: Optional[datetime] = None,
) -> Optional[MatchSuggestion]:
    """Next pairing for a free court, or None when nothing can be suggested."""
    outcome = evaluate_suggestion(snapshot, match_type, now)
    if isinstance(outcome, NoSuggestion):
        logger.debug("No %s suggestion: %s", match_type, outcome.reason.value)
        return None
    return outcome
