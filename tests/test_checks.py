from __future__ import annotations

import pytest

from itemsim.checks import run_matrix_checks
from itemsim.item_cf.matrix import SparseMatrix


def _status(results, name: str) -> str:
    return {r.name: r.status for r in results}[name]


def test_cosine_matrix_passes() -> None:
    m = SparseMatrix({(1, 1): 1.0, (1, 2): 0.5, (2, 1): 0.5, (2, 2): 1.0})
    results = run_matrix_checks(m, row_norm=False, strict=True)
    assert all(r.status == "PASS" for r in results)


def test_asymmetry_fails_and_strict_raises() -> None:
    m = SparseMatrix({(1, 1): 1.0, (1, 2): 0.5, (2, 2): 1.0})

    results = run_matrix_checks(m, row_norm=False)
    assert _status(results, "matrix.symmetric") == "FAIL"

    with pytest.raises(ValueError, match="matrix.symmetric"):
        run_matrix_checks(m, row_norm=False, strict=True)


def test_row_normalized_checks_row_sums_not_symmetry() -> None:
    m = SparseMatrix({(1, 1): 0.5, (1, 2): 0.5, (2, 1): 0.25, (2, 2): 0.75})
    results = run_matrix_checks(m, row_norm=True, strict=True)
    names = {r.name for r in results}
    assert "matrix.symmetric" not in names
    assert _status(results, "rows.sum_to_one") == "PASS"


def test_non_finite_values_fail() -> None:
    m = SparseMatrix({(1, 1): float("nan")})
    assert _status(run_matrix_checks(m, row_norm=False), "values.finite") == "FAIL"
