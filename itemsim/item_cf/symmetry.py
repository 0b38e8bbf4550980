from __future__ import annotations

from .errors import InvalidKeyError
from .matrix import SparseMatrix


def expand_symmetric(upper: SparseMatrix) -> SparseMatrix:
    """Mirror an upper-triangular matrix into a new full symmetric matrix.

    Values are copied unchanged; diagonal cells are stored once.
    """
    full = SparseMatrix()
    for row, col, value in upper.cells():
        if row > col:
            raise InvalidKeyError(row, col, "expected an upper-triangular matrix")
        full.put(row, col, value)
        if row != col:
            full.put(col, row, value)
    return full
