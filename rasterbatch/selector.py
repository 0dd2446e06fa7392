import math
import random
from typing import Any, Sequence

from .errors import EmptyInput
from .layers import DEFAULT_RARITY, Trait


def normalize_rarity(value: Any) -> float:
    """
    Turn a stored rarity into a selection weight.

    Missing or unparseable values weigh DEFAULT_RARITY; negatives weigh 0.
    """
    if value is None or isinstance(value, bool):
        return float(DEFAULT_RARITY)
    try:
        weight = float(value)
    except (TypeError, ValueError):
        return float(DEFAULT_RARITY)
    if not math.isfinite(weight):
        return float(DEFAULT_RARITY)
    return max(weight, 0.0)


def pick_by_rarity(traits: Sequence[Trait], rng: random.Random) -> Trait:
    """
    Draw one trait with probability weight/total.

    r is drawn from [0, total) and the first trait with r < cumulative wins,
    walking in stored order. A zero-weight trait can therefore never win while
    any other weight is positive. When every weight is zero the first trait
    is returned without consuming randomness.
    """
    if not traits:
        raise EmptyInput("cannot pick from a layer without traits")

    weights = [normalize_rarity(t.rarity) for t in traits]
    total = sum(weights)
    if total <= 0:
        return traits[0]

    r = rng.random() * total
    cumulative = 0.0
    for trait, weight in zip(traits, weights):
        cumulative += weight
        if r < cumulative:
            return trait
    # Float rounding can leave r a hair above the final cumulative sum.
    for trait, weight in reversed(list(zip(traits, weights))):
        if weight > 0:
            return trait
    return traits[0]
