from __future__ import annotations

from collections.abc import Mapping

from core.numeric import clamp, round_to
from core.prng import SeededSequence
from shared.enums import TRAIT_KEYS

DELTA_SCALE = 0.1
MAX_DELTA = 1.5
FIRST_REWARD_BASE = 0.3
FIRST_REWARD_SPREAD = 0.3


def compute_trait_deltas(
    current: Mapping[str, float],
    previous: Mapping[str, float] | None,
    seed: str,
) -> dict[str, float]:
    """Per-trait movement since the previous session, or a small first-completion reward."""
    if previous is None:
        rng = SeededSequence.derive(seed)
        return {
            trait: round_to(rng.next() * FIRST_REWARD_SPREAD + FIRST_REWARD_BASE, 1)
            for trait in TRAIT_KEYS
        }

    deltas: dict[str, float] = {}
    for trait in TRAIT_KEYS:
        change = (float(current.get(trait, 0)) - float(previous.get(trait, 0))) * DELTA_SCALE
        deltas[trait] = round_to(clamp(change, -MAX_DELTA, MAX_DELTA), 1)
    return deltas
