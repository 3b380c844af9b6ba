"""
Session standings: player rankings and tournament team table.
Read-only; computed from SessionPlayer counters and ended matches.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlmodel import Session, select

from courtqueue.models.match import Match, MatchParticipant
from courtqueue.models.play_session import PlaySession
from courtqueue.models.player import Player
from courtqueue.models.session_player import SessionPlayer
from courtqueue.models.team import Team
from courtqueue.services.match_suggester import MODE_TOURNAMENT

WIN_POINTS = 10
LOSS_POINTS = 6


@dataclass
class PlayerRanking:
    player_id: int
    full_name: str
    games_played: int
    wins: int
    losses: int
    win_pct: float
    rank: int = 0


@dataclass
class TeamStanding:
    team_id: int
    name: str
    color: Optional[str] = None
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    points: int = 0
    win_pct: float = 0.0
    rank: int = 0


def rank_players(session: Session, session_id: int) -> List[PlayerRanking]:
    """Win percentage desc, then wins desc, games desc, name asc."""
    rows = session.exec(
        select(SessionPlayer, Player)
        .join(Player, Player.id == SessionPlayer.player_id)
        .where(SessionPlayer.session_id == session_id)
    ).all()

    ranked = [
        PlayerRanking(
            player_id=player.id,
            full_name=player.full_name or "",
            games_played=sp.games_played,
            wins=sp.wins,
            losses=sp.losses,
            win_pct=sp.wins / sp.games_played if sp.games_played > 0 else 0.0,
        )
        for sp, player in rows
    ]
    ranked.sort(key=lambda r: (-r.win_pct, -r.wins, -r.games_played, r.full_name))
    for idx, row in enumerate(ranked, start=1):
        row.rank = idx
    return ranked


def _side_team_id(participants: List[MatchParticipant], team_number: int) -> Optional[int]:
    """The single team a side played for, or None when missing or mixed."""
    ids = [p.team_id for p in participants if p.team_number == team_number and p.team_id]
    if not ids or len(set(ids)) != 1:
        return None
    return ids[0]


def team_standings(session: Session, play_session: PlaySession, all_sessions: bool = False) -> List[TeamStanding]:
    """Tournament table. Empty for non-tournament sessions.

    Matches whose sides do not each resolve to one distinct team are
    skipped, as are matches without a winner.
    """
    if play_session.mode != MODE_TOURNAMENT:
        return []

    query = select(Match).where(Match.status == "ended")
    if all_sessions:
        query = query.join(PlaySession, PlaySession.id == Match.session_id).where(
            PlaySession.mode == MODE_TOURNAMENT
        )
    else:
        query = query.where(Match.session_id == play_session.id)
    matches = session.exec(query.order_by(Match.id)).all()

    stats: Dict[int, TeamStanding] = {}

    def ensure(team_id: int) -> TeamStanding:
        if team_id not in stats:
            team = session.get(Team, team_id)
            stats[team_id] = TeamStanding(
                team_id=team_id,
                name=team.name if team else "Team",
                color=team.color if team else None,
            )
        return stats[team_id]

    for match in matches:
        if match.winner_team not in (1, 2):
            continue
        team1_id = _side_team_id(match.participants, 1)
        team2_id = _side_team_id(match.participants, 2)
        if not team1_id or not team2_id or team1_id == team2_id:
            continue

        team1 = ensure(team1_id)
        team2 = ensure(team2_id)
        team1.games_played += 1
        team2.games_played += 1
        winner, loser = (team1, team2) if match.winner_team == 1 else (team2, team1)
        winner.wins += 1
        winner.points += WIN_POINTS
        loser.losses += 1
        loser.points += LOSS_POINTS

    rows = list(stats.values())
    for row in rows:
        row.win_pct = row.wins / row.games_played if row.games_played else 0.0
    rows.sort(key=lambda t: (-t.wins, -t.points, t.name))
    for idx, row in enumerate(rows, start=1):
        row.rank = idx
    return rows
