"""
Weighted reward selection.

A box's rewards form contiguous ranges on [0, total_weight) in append order:
weights [30, 50, 20] cover [0, 30), [30, 80) and [80, 100). A draw r picks
the reward whose range contains it.
"""

from typing import Protocol, Sequence, TypeVar

from lootvault.services.errors import NoRewardsAvailable


class Weighted(Protocol):
    weight: int


W = TypeVar("W", bound=Weighted)


def draw(random_value: int, total_weight: int) -> int:
    """Reduce a raw random integer to a draw in [0, total_weight)."""
    if total_weight <= 0:
        raise NoRewardsAvailable("Total reward weight is zero")
    return int(random_value) % total_weight


def pick_index(weights: Sequence[int], r: int) -> int:
    """Index of the weight range containing r (0 <= r < sum(weights))."""
    total = sum(weights)
    if total <= 0:
        raise NoRewardsAvailable("Total reward weight is zero")
    if not 0 <= r < total:
        raise ValueError(f"draw {r} outside [0, {total})")

    cumulative = 0
    for index, weight in enumerate(weights):
        cumulative += weight
        if r < cumulative:
            return index

    # Unreachable while r < total
    raise ValueError(f"draw {r} did not land in any range")


def select_index(weights: Sequence[int], random_value: int) -> int:
    return pick_index(weights, draw(random_value, sum(weights)))


def select_reward(rewards: Sequence[W], random_value: int) -> W:
    """Pick one reward with probability proportional to its weight."""
    if not rewards:
        raise NoRewardsAvailable("No rewards available")
    return rewards[select_index([r.weight for r in rewards], random_value)]


def odds(weights: Sequence[int]) -> list[float]:
    """Probability of each index, in append order."""
    total = sum(weights)
    if total <= 0:
        return [0.0 for _ in weights]
    return [w / total for w in weights]
