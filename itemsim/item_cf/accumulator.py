"""Running upper-triangular co-occurrence matrix."""

from __future__ import annotations

from typing import Any, Sequence

from .errors import InvalidKeyError
from .matrix import INT64_MAX, INT64_MIN, SparseMatrix


def check_canonical_key(row: Any, col: Any) -> None:
    """Raise InvalidKeyError unless (row, col) is a canonical 64-bit item pair."""
    for v in (row, col):
        if isinstance(v, bool) or not isinstance(v, int):
            raise InvalidKeyError(row, col, f"item id must be int, got {type(v).__name__}")
        if v < INT64_MIN or v > INT64_MAX:
            raise InvalidKeyError(row, col, "item id outside signed 64-bit range")
    if row > col:
        raise InvalidKeyError(row, col, "non-canonical key (row > col)")


class SparseMatrixAccumulator:
    """Sums per-user fragments into one running matrix, in place.

    Memory grows with the number of distinct pairs, not the number of users.
    """

    def __init__(self, matrix: SparseMatrix | None = None) -> None:
        if matrix is not None:
            for row, col in matrix:
                check_canonical_key(row, col)
        self._matrix: SparseMatrix | None = matrix.copy() if matrix is not None else SparseMatrix()
        self.merges = 0

    @property
    def matrix(self) -> SparseMatrix:
        if self._matrix is None:
            raise RuntimeError("accumulator already finished")
        return self._matrix

    def merge(self, fragment: SparseMatrix) -> None:
        """Add every fragment cell into the running matrix (absent = 0)."""
        running = self.matrix
        for row, col, value in fragment.cells():
            check_canonical_key(row, col)
            running.add(row, col, value)
        self.merges += 1

    def finish(self) -> SparseMatrix:
        """Hand the accumulated matrix over; further merges are rejected."""
        matrix = self.matrix
        self._matrix = None
        return matrix


def merge_partials(partials: Sequence[SparseMatrix]) -> SparseMatrix:
    """Pairwise tree reduction of independently accumulated partial matrices."""
    level = list(partials)
    if not level:
        return SparseMatrix()
    while len(level) > 1:
        nxt: list[SparseMatrix] = []
        for i in range(0, len(level), 2):
            if i + 1 == len(level):
                nxt.append(level[i])
                continue
            acc = SparseMatrixAccumulator(level[i])
            acc.merge(level[i + 1])
            nxt.append(acc.finish())
        level = nxt
    return level[0].copy()
