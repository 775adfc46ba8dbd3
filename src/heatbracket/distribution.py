"""
Heat distribution: splitting a pool of pilots into heats of 2-4.

Four-pilot heats are preferred. Remainders are absorbed by three-pilot heats:
- N % 4 == 0: only 4-pilot heats
- N % 4 == 3: one 3-pilot heat
- N % 4 == 2: two 3-pilot heats
- N % 4 == 1: three 3-pilot heats
Pools of 5 or fewer cannot be split that way and are handled directly
(N <= 4 is a single heat, 5 becomes 3 + 2).
"""
import random
from typing import List, Optional, Sequence, Tuple

from .constants import MAX_HEAT_SIZE, MIN_HEAT_SIZE


def calculate_heat_distribution(pilot_count: int) -> Tuple[int, int]:
    """
    Calculate how many 4-pilot and 3-pilot heats a pool of this size needs.

    Returns:
        (four_pilot_heats, three_pilot_heats)

    Raises:
        ValueError: for pools smaller than 6, which cannot be built from 3s and 4s
    """
    if pilot_count < 6:
        raise ValueError(f"Cannot split {pilot_count} pilots into heats of 3 and 4")

    # Walk down from the maximum number of 4-pilot heats; the first fit is optimal
    for four_heats in range(pilot_count // 4, -1, -1):
        remaining = pilot_count - four_heats * 4
        if remaining % 3 == 0:
            return four_heats, remaining // 3

    raise ValueError(f"No heat distribution found for {pilot_count} pilots")


def calculate_heat_sizes(pilot_count: int) -> List[int]:
    """Heat sizes for a pool, largest heats first."""
    if pilot_count < MIN_HEAT_SIZE:
        raise ValueError(f"A heat needs at least {MIN_HEAT_SIZE} pilots, got {pilot_count}")
    if pilot_count <= MAX_HEAT_SIZE:
        return [pilot_count]
    if pilot_count == 5:
        return [3, 2]
    four_heats, three_heats = calculate_heat_distribution(pilot_count)
    return [4] * four_heats + [3] * three_heats


def distribute_pilots(pilot_ids: Sequence[str]) -> List[List[str]]:
    """
    Split pilot ids into heats, preserving the given order.

    Callers that want a random grouping shuffle before calling.
    """
    groups = []
    cursor = 0
    for size in calculate_heat_sizes(len(pilot_ids)):
        groups.append(list(pilot_ids[cursor:cursor + size]))
        cursor += size
    return groups


def shuffle_pilots(pilot_ids: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Return a uniformly shuffled copy of pilot_ids drawn from rng."""
    shuffled = list(pilot_ids)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled
