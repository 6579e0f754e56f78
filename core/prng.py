from __future__ import annotations

import hashlib

_LCG_A = 1664525
_LCG_C = 1013904223
_LCG_M = 2**32
_SEED_MOD = 2147483647


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def hash_seed(seed: str) -> int:
    """Polynomial hash over UTF-16 code units, wrapped to a signed 32-bit int."""
    data = seed.encode("utf-16-le")
    acc = 0
    for offset in range(0, len(data), 2):
        unit = int.from_bytes(data[offset : offset + 2], "little")
        acc = _to_int32(acc * 31 + unit)
    return abs(acc) % _SEED_MOD


class SeededSequence:
    """Linear congruential stream; identical seeds give identical sequences."""

    __slots__ = ("seed", "_state")

    def __init__(self, seed: str) -> None:
        self.seed = seed
        self._state = hash_seed(seed)

    @classmethod
    def derive(cls, seed: str) -> SeededSequence:
        return cls(seed)

    def next(self) -> float:
        self._state = (_LCG_A * self._state + _LCG_C) % _LCG_M
        return self._state / _LCG_M

    def take(self, count: int) -> list[float]:
        return [self.next() for _ in range(count)]


def generate_seed(user_id: str, session_id: str, purpose: str = "insightsV2") -> str:
    raw = f"{user_id}|{session_id}|{purpose}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]
