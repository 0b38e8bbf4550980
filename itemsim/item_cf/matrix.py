"""Dict-of-keys sparse matrix keyed by (row item, column item)."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, Tuple

import numpy as np
import pandas as pd


Key = Tuple[int, int]
Cell = Tuple[int, int, float]

INT64_MIN = int(np.iinfo(np.int64).min)
INT64_MAX = int(np.iinfo(np.int64).max)


class SparseMatrix:
    """Sparse real-valued matrix over opaque integer item ids.

    Absent cells are implicitly 0. Dimensions are not fixed: the row and column
    key sets are whatever ids have been stored.
    """

    __slots__ = ("_cells",)

    def __init__(self, cells: Dict[Key, float] | None = None) -> None:
        self._cells: Dict[Key, float] = dict(cells) if cells else {}

    @classmethod
    def from_cells(cls, cells: Iterable[Cell]) -> "SparseMatrix":
        """Build a matrix from (row, col, value) triples; later duplicates win."""
        m = cls()
        for row, col, value in cells:
            m.put(row, col, value)
        return m

    def get(self, row: int, col: int, default: float = 0.0) -> float:
        return self._cells.get((row, col), default)

    def put(self, row: int, col: int, value: float) -> None:
        self._cells[(row, col)] = float(value)

    def add(self, row: int, col: int, value: float) -> None:
        key = (row, col)
        self._cells[key] = self._cells.get(key, 0.0) + float(value)

    def __contains__(self, key: object) -> bool:
        return key in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._cells)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SparseMatrix):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"SparseMatrix(cells={len(self._cells)})"

    def cells(self) -> Iterator[Cell]:
        for (row, col), value in self._cells.items():
            yield row, col, value

    def diagonal(self) -> dict[int, float]:
        """Return {item: value(item, item)} for every stored diagonal cell."""
        return {row: value for (row, col), value in self._cells.items() if row == col}

    def row_keys(self) -> set[int]:
        return {row for row, _ in self._cells}

    def column_keys(self) -> set[int]:
        return {col for _, col in self._cells}

    def rows(self) -> dict[int, dict[int, float]]:
        """Group stored cells by row: {row: {col: value}}."""
        out: dict[int, dict[int, float]] = {}
        for (row, col), value in self._cells.items():
            out.setdefault(row, {})[col] = value
        return out

    def copy(self) -> "SparseMatrix":
        return SparseMatrix(self._cells)

    def is_upper_triangular(self) -> bool:
        return all(row <= col for row, col in self._cells)

    def is_symmetric(self) -> bool:
        for (row, col), value in self._cells.items():
            if row == col:
                continue
            mirrored = self._cells.get((col, row))
            if mirrored is None or mirrored != value:
                return False
        return True

    def allclose(self, other: "SparseMatrix", *, rtol: float = 1e-9, atol: float = 1e-12) -> bool:
        """Tolerance comparison; both matrices must store the same keys."""
        if self._cells.keys() != other._cells.keys():
            return False
        if not self._cells:
            return True
        keys = list(self._cells)
        a = np.fromiter((self._cells[k] for k in keys), dtype=np.float64, count=len(keys))
        b = np.fromiter((other._cells[k] for k in keys), dtype=np.float64, count=len(keys))
        return bool(np.allclose(a, b, rtol=rtol, atol=atol))

    def to_frame(self, *, sort: bool = True) -> pd.DataFrame:
        """Return cells as a DataFrame with columns row, col, value."""
        n = len(self._cells)
        rows = np.fromiter((k[0] for k in self._cells), dtype=np.int64, count=n)
        cols = np.fromiter((k[1] for k in self._cells), dtype=np.int64, count=n)
        values = np.fromiter(self._cells.values(), dtype=np.float64, count=n)
        df = pd.DataFrame({"row": rows, "col": cols, "value": values})
        if sort and n:
            df = df.sort_values(["row", "col"], kind="mergesort").reset_index(drop=True)
        return df
