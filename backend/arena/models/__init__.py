from arena.models.participant import Participant
from arena.models.tournament import Tournament
from arena.models.tournament_battle import TournamentBattle

__all__ = [
    "Participant",
    "Tournament",
    "TournamentBattle",
]
