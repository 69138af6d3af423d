# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from arena.models.participant import Participant  # noqa: F401
from arena.models.tournament import Tournament  # noqa: F401
from arena.models.tournament_battle import TournamentBattle  # noqa: F401
