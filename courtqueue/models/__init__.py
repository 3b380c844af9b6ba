from courtqueue.models.court import Court, CourtSession
from courtqueue.models.match import Match, MatchParticipant
from courtqueue.models.play_session import PlaySession
from courtqueue.models.player import Player
from courtqueue.models.queue_entry import QueueEntry, QueueEntryPlayer
from courtqueue.models.session_player import SessionPlayer
from courtqueue.models.team import Team

__all__ = [
    "PlaySession",
    "Player",
    "Team",
    "SessionPlayer",
    "QueueEntry",
    "QueueEntryPlayer",
    "Court",
    "CourtSession",
    "Match",
    "MatchParticipant",
]
