# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from courtqueue.models.court import Court, CourtSession  # noqa: F401
from courtqueue.models.match import Match, MatchParticipant  # noqa: F401
from courtqueue.models.play_session import PlaySession  # noqa: F401
from courtqueue.models.player import Player  # noqa: F401
from courtqueue.models.queue_entry import QueueEntry, QueueEntryPlayer  # noqa: F401
from courtqueue.models.session_player import SessionPlayer  # noqa: F401
from courtqueue.models.team import Team  # noqa: F401
