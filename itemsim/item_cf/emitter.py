"""Per-user pair emission: one user's qualifying items -> upper-triangular fragment."""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Iterable, Protocol

from .matrix import SparseMatrix


class EmitterStrategy(str, Enum):
    """Weighting used when turning a user's items into pair contributions."""

    UNIT = "unit"
    COUNT = "count"

    @classmethod
    def parse(cls, value: "str | EmitterStrategy") -> "EmitterStrategy":
        """Resolve a config value; `cosine_weighted` is accepted as an alias of `unit`."""
        if isinstance(value, EmitterStrategy):
            return value
        key = str(value).strip().lower().replace("-", "_")
        if key == "cosine_weighted":
            return cls.UNIT
        try:
            return cls(key)
        except ValueError as exc:
            allowed = sorted([s.value for s in cls] + ["cosine_weighted"])
            raise ValueError(f"Unknown emitter strategy {value!r}; expected one of {allowed}") from exc


class PairEmitter(Protocol):
    strategy: EmitterStrategy

    def emit(self, items: Iterable[int]) -> SparseMatrix:
        ...


class UnitPairEmitter:
    """One unit per unordered pair {a, b} (a <= b), self pairs included.

    Repeated items collapse, so the accumulated diagonal is the number of users
    holding the item and off-diagonals are co-occurrence counts.
    """

    strategy = EmitterStrategy.UNIT

    def emit(self, items: Iterable[int]) -> SparseMatrix:
        ordered = sorted(set(items))
        fragment = SparseMatrix()
        for i, a in enumerate(ordered):
            for b in ordered[i:]:
                fragment.put(a, b, 1.0)
        return fragment


class CountPairEmitter:
    """Multiset weighting: pair (a, b) contributes n_a * n_b.

    This is the upper triangle of the outer product of the user's item count
    vector, so the diagonal holds squared norms and the later cosine transform
    stays a true cosine over count vectors.
    """

    strategy = EmitterStrategy.COUNT

    def emit(self, items: Iterable[int]) -> SparseMatrix:
        counts = Counter(items)
        ordered = sorted(counts)
        fragment = SparseMatrix()
        for i, a in enumerate(ordered):
            n_a = counts[a]
            for b in ordered[i:]:
                fragment.put(a, b, float(n_a * counts[b]))
        return fragment


_EMITTERS: dict[EmitterStrategy, type] = {
    EmitterStrategy.UNIT: UnitPairEmitter,
    EmitterStrategy.COUNT: CountPairEmitter,
}


def get_emitter(strategy: "str | EmitterStrategy" = EmitterStrategy.UNIT) -> PairEmitter:
    """Return the emitter implementing `strategy`."""
    return _EMITTERS[EmitterStrategy.parse(strategy)]()
