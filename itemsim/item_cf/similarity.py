"""Co-occurrence counts -> cosine similarities (+ optional row normalization)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .errors import DegenerateNormError
from .matrix import SparseMatrix


DegenerateCallback = Callable[[DegenerateNormError], None]


@dataclass
class TransformStats:
    cells_in: int = 0
    cells_out: int = 0
    dropped_cells: int = 0
    zero_sum_rows: int = 0


def cosine_transform(
    full: SparseMatrix,
    *,
    on_degenerate: Optional[DegenerateCallback] = None,
) -> SparseMatrix:
    """Return a new matrix with value(a, b) / sqrt(diag(a) * diag(b)) per cell.

    The diagonal is snapshotted from `full` before any value is computed. Cells
    whose row or column item has a zero or missing diagonal are left out of the
    result and reported through `on_degenerate`.
    """
    n = len(full)
    if n == 0:
        return SparseMatrix()

    diag = full.diagonal()
    keys = list(full)
    rows = [k[0] for k in keys]
    cols = [k[1] for k in keys]
    values = np.fromiter((full.get(r, c) for r, c in keys), dtype=np.float64, count=n)
    d_row = np.fromiter((diag.get(r, 0.0) for r in rows), dtype=np.float64, count=n)
    d_col = np.fromiter((diag.get(c, 0.0) for c in cols), dtype=np.float64, count=n)

    norm_sq = d_row * d_col
    ok = norm_sq > 0.0
    # Degenerate positions get a placeholder norm; they are never emitted.
    sims = values / np.sqrt(np.where(ok, norm_sq, 1.0))

    out = SparseMatrix()
    for i in np.flatnonzero(ok).tolist():
        out.put(rows[i], cols[i], float(sims[i]))

    if on_degenerate is not None:
        for i in np.flatnonzero(~ok).tolist():
            on_degenerate(DegenerateNormError(rows[i], cols[i], float(d_row[i]), float(d_col[i])))
    return out


def row_normalize(
    matrix: SparseMatrix,
    *,
    target: float = 1.0,
    stats: Optional[TransformStats] = None,
) -> SparseMatrix:
    """Scale each row independently so its values sum to `target`.

    Rows summing to zero are copied unchanged. The result is generally no
    longer symmetric.
    """
    out = SparseMatrix()
    for row, entries in matrix.rows().items():
        cols = list(entries)
        values = np.fromiter(entries.values(), dtype=np.float64, count=len(cols))
        total = float(values.sum())
        if total == 0.0:
            if stats is not None:
                stats.zero_sum_rows += 1
            for col, value in zip(cols, values.tolist()):
                out.put(row, col, value)
            continue
        scaled = values * (float(target) / total)
        for col, value in zip(cols, scaled.tolist()):
            out.put(row, col, value)
    return out


class SimilarityTransformer:
    """Cosine transform followed, when `row_norm` is set, by row normalization."""

    def __init__(self, *, row_norm: bool = False, on_degenerate: Optional[DegenerateCallback] = None) -> None:
        self.row_norm = bool(row_norm)
        self.on_degenerate = on_degenerate
        self.stats = TransformStats()

    def _record_degenerate(self, err: DegenerateNormError) -> None:
        self.stats.dropped_cells += 1
        if self.on_degenerate is not None:
            self.on_degenerate(err)

    def cosine(self, full: SparseMatrix) -> SparseMatrix:
        self.stats.cells_in = len(full)
        result = cosine_transform(full, on_degenerate=self._record_degenerate)
        self.stats.cells_out = len(result)
        return result

    def normalize_rows(self, matrix: SparseMatrix) -> SparseMatrix:
        result = row_normalize(matrix, stats=self.stats)
        self.stats.cells_out = len(result)
        return result

    def transform(self, full: SparseMatrix) -> SparseMatrix:
        result = self.cosine(full)
        if self.row_norm:
            result = self.normalize_rows(result)
        return result
