"""Current round: lowest round with an open battle, else the last round, else 1."""
import random

import pytest

from arena.models.tournament_battle import BATTLE_STATUSES, TournamentBattle
from arena.services.round_resolver import (
    battles_in_round,
    is_round_complete,
    resolve_current_round,
)


def _battle(round_number: int, status: str, battle_id: int = None) -> TournamentBattle:
    return TournamentBattle(id=battle_id, tournament_id=1, round=round_number, status=status)


def test_empty_battle_set_is_round_one():
    assert resolve_current_round([]) == 1


def test_first_round_with_open_battle_wins():
    battles = [
        _battle(1, "completed"),
        _battle(1, "forfeited"),
        _battle(2, "scheduled"),
        _battle(2, "pending"),
    ]
    assert resolve_current_round(battles) == 2


def test_all_complete_returns_last_round():
    battles = [
        _battle(1, "completed"),
        _battle(2, "completed"),
        _battle(3, "forfeited"),
    ]
    assert resolve_current_round(battles) == 3


def test_earlier_open_round_beats_later_open_round():
    battles = [
        _battle(3, "pending"),
        _battle(1, "completed"),
        _battle(2, "in_progress"),
        _battle(2, "completed"),
    ]
    assert resolve_current_round(battles) == 2


def test_input_order_does_not_matter():
    battles = [_battle(r, s) for r, s in [(2, "pending"), (1, "completed"), (1, "in_progress"), (4, "pending")]]
    expected = resolve_current_round(battles)
    shuffled = list(battles)
    random.Random(7).shuffle(shuffled)
    assert resolve_current_round(shuffled) == expected == 1


def test_rounds_need_not_be_contiguous():
    battles = [_battle(1, "completed"), _battle(5, "completed")]
    assert resolve_current_round(battles) == 5


def test_random_battle_sets_match_definition():
    rng = random.Random(42)
    for _ in range(200):
        battles = [
            _battle(rng.randint(1, 5), rng.choice(BATTLE_STATUSES))
            for _ in range(rng.randint(1, 12))
        ]
        rounds = sorted({b.round for b in battles})
        open_rounds = [r for r in rounds if not is_round_complete(battles_in_round(battles, r))]
        expected = open_rounds[0] if open_rounds else rounds[-1]
        assert resolve_current_round(battles) == expected


@pytest.mark.parametrize(
    "statuses, complete",
    [
        (["completed", "forfeited"], True),
        (["completed", "in_progress"], False),
        (["pending"], False),
        ([], True),
    ],
)
def test_is_round_complete(statuses, complete):
    assert is_round_complete([_battle(1, s) for s in statuses]) is complete
