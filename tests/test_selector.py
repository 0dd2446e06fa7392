import random
from collections import Counter

import pytest

from rasterbatch.errors import EmptyInput
from rasterbatch.layers import Trait
from rasterbatch.selector import normalize_rarity, pick_by_rarity


class FixedRandom:
    """Stands in for random.Random with a fixed draw in [0, 1)."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


def traits_with(*rarities):
    return [
        Trait(source_name=f"t{i}.png", display_name=f"t{i}", rarity=r)
        for i, r in enumerate(rarities)
    ]


def test_frequencies_match_weights():
    traits = traits_with(1, 2, 3, 4)
    rng = random.Random(1234)
    trials = 20000

    counts = Counter(pick_by_rarity(traits, rng).display_name for _ in range(trials))

    total = 10
    chi2 = 0.0
    for trait, weight in zip(traits, (1, 2, 3, 4)):
        expected = trials * weight / total
        chi2 += (counts[trait.display_name] - expected) ** 2 / expected
    # df=3, p=0.001
    assert chi2 < 16.27


@pytest.mark.parametrize("seed", range(25))
def test_all_zero_rarity_picks_first(seed):
    traits = traits_with(0, 0, 0)
    assert pick_by_rarity(traits, random.Random(seed)) is traits[0]


def test_zero_weight_never_wins_over_positive():
    traits = traits_with(0, 1)
    rng = random.Random(7)
    assert all(pick_by_rarity(traits, rng) is traits[1] for _ in range(500))


def test_strict_comparison_at_boundary():
    traits = traits_with(1, 1)
    # r = 0.5 * 2 = 1.0 equals the first cumulative weight, so the second wins.
    assert pick_by_rarity(traits, FixedRandom(0.5)) is traits[1]
    assert pick_by_rarity(traits, FixedRandom(0.0)) is traits[0]


def test_float_overshoot_returns_last_positive_trait():
    traits = traits_with(*([0.1] * 10), 0)
    assert pick_by_rarity(traits, FixedRandom(0.9999999999999999)) is traits[9]


def test_same_seed_same_sequence():
    traits = traits_with(5, 1, 3)
    a = random.Random(99)
    b = random.Random(99)
    seq_a = [pick_by_rarity(traits, a).id for _ in range(50)]
    seq_b = [pick_by_rarity(traits, b).id for _ in range(50)]
    assert seq_a == seq_b


def test_empty_trait_list_raises():
    with pytest.raises(EmptyInput):
        pick_by_rarity([], random.Random(0))


@pytest.mark.parametrize(
    "value, expected",
    [
        (5, 5.0),
        ("12", 12.0),
        (0, 0.0),
        (-3, 0.0),
        (None, 1.0),
        ("rare", 1.0),
        (float("nan"), 1.0),
        (True, 1.0),
    ],
)
def test_normalize_rarity(value, expected):
    assert normalize_rarity(value) == expected
