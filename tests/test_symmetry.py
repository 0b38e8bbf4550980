from __future__ import annotations

import pytest

from itemsim.item_cf.errors import InvalidKeyError
from itemsim.item_cf.matrix import SparseMatrix
from itemsim.item_cf.symmetry import expand_symmetric


def test_expand_mirrors_off_diagonal_cells() -> None:
    upper = SparseMatrix({(1, 1): 2.0, (1, 2): 2.0, (2, 2): 2.0, (3, 3): 1.0})

    full = expand_symmetric(upper)

    assert full.get(2, 1) == 2.0
    assert len(full) == 5
    assert full.is_symmetric()
    for row, col, value in upper.cells():
        assert full.get(row, col) == value
        assert full.get(col, row) == value


def test_expand_returns_new_matrix() -> None:
    upper = SparseMatrix({(1, 2): 1.0})
    full = expand_symmetric(upper)
    assert len(upper) == 1
    assert full is not upper


def test_expand_rejects_lower_cells() -> None:
    with pytest.raises(InvalidKeyError):
        expand_symmetric(SparseMatrix({(2, 1): 1.0}))
