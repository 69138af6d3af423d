"""
Current-round resolution over an in-memory list of battles.

A round is complete when every battle in it is completed or forfeited.
The current round is the lowest incomplete round; once every round is
complete it is the highest round seen, and 1 when there are no battles.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from arena.models.tournament_battle import TERMINAL_STATUSES, TournamentBattle

DEFAULT_ROUND = 1


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def is_round_complete(battles: Iterable[TournamentBattle]) -> bool:
    """True if every battle is terminal. An empty round counts as complete."""
    return all(is_terminal(b.status) for b in battles)


def group_by_round(battles: Iterable[TournamentBattle]) -> Dict[int, List[TournamentBattle]]:
    rounds: Dict[int, List[TournamentBattle]] = defaultdict(list)
    for battle in battles:
        rounds[battle.round].append(battle)
    return dict(rounds)


def battles_in_round(battles: Iterable[TournamentBattle], round_number: int) -> List[TournamentBattle]:
    return [b for b in battles if b.round == round_number]


def resolve_current_round(battles: Sequence[TournamentBattle]) -> int:
    rounds = group_by_round(battles)
    if not rounds:
        return DEFAULT_ROUND

    for round_number in sorted(rounds):
        round_battles = rounds[round_number]
        completed = sum(1 for b in round_battles if is_terminal(b.status))
        if completed < len(round_battles):
            return round_number

    return max(rounds)
