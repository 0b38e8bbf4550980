"""Sanity checks over a finalized similarity matrix.

Used by the build pipeline after the similarity transform; results are logged
rather than persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .item_cf.matrix import SparseMatrix


@dataclass(frozen=True)
class CheckResult:
    """Single validation check outcome."""

    name: str
    status: str  # "PASS" | "WARN" | "FAIL"
    details: str


def run_matrix_checks(
    matrix: SparseMatrix,
    *,
    row_norm: bool,
    strict: bool = False,
    atol: float = 1e-9,
) -> Tuple[CheckResult, ...]:
    """Run post-transform checks.

    Parameters
    ----------
    matrix:
        Finalized matrix (cosine, optionally row normalized).
    row_norm:
        Whether row normalization was applied. Symmetry and unit diagonal only
        hold without it; row sums of 1.0 only hold with it.
    strict:
        If True, raise ValueError on FAIL checks.
    atol:
        Absolute tolerance for float comparisons.

    Returns
    -------
    tuple[CheckResult, ...]
        All check results.
    """
    checks: List[CheckResult] = []

    def _fail_or_warn(name: str, ok: bool, fail_msg: str, warn: bool = False) -> None:
        if ok:
            checks.append(CheckResult(name=name, status="PASS", details="OK"))
            return
        status = "WARN" if warn else "FAIL"
        checks.append(CheckResult(name=name, status=status, details=fail_msg))
        if strict and status == "FAIL":
            raise ValueError(f"[FAIL] {name}: {fail_msg}")

    values = np.fromiter((v for _, _, v in matrix.cells()), dtype=np.float64, count=len(matrix))

    # 1) No NaN / inf
    n_bad = int((~np.isfinite(values)).sum())
    _fail_or_warn(
        "values.finite",
        ok=(n_bad == 0),
        fail_msg=f"{n_bad} non-finite cell values",
    )

    # 2) Cosine of non-negative counts lies in [0, 1]
    n_out = int(((values < -atol) | (values > 1.0 + atol)).sum())
    _fail_or_warn(
        "values.unit_interval",
        ok=(n_out == 0),
        fail_msg=f"{n_out} cell values outside [0, 1]",
        warn=True,
    )

    rows = matrix.rows()
    if row_norm:
        # 3a) Rows sum to 1 (zero-sum rows are left as-is, so only WARN)
        off = [r for r, entries in rows.items() if abs(sum(entries.values()) - 1.0) > 1e-6]
        _fail_or_warn(
            "rows.sum_to_one",
            ok=(len(off) == 0),
            fail_msg=f"{len(off)} rows do not sum to 1.0, e.g. {sorted(off)[:10]}",
            warn=True,
        )
    else:
        # 3b) Symmetric, unit diagonal
        asym = [
            (r, c)
            for r, c, v in matrix.cells()
            if r != c and ((c, r) not in matrix or abs(matrix.get(c, r) - v) > atol)
        ]
        _fail_or_warn(
            "matrix.symmetric",
            ok=(len(asym) == 0),
            fail_msg=f"{len(asym)} cells without an equal mirror, e.g. {sorted(asym)[:10]}",
        )

        diag = matrix.diagonal()
        bad_diag = sorted(item for item, v in diag.items() if abs(v - 1.0) > 1e-6)
        _fail_or_warn(
            "diagonal.unit",
            ok=(len(bad_diag) == 0),
            fail_msg=f"{len(bad_diag)} diagonal cells != 1.0, e.g. {bad_diag[:10]}",
        )

    # 4) Every row has its diagonal
    missing_diag = sorted(set(rows) - set(matrix.diagonal()))
    _fail_or_warn(
        "diagonal.present",
        ok=(len(missing_diag) == 0),
        fail_msg=f"{len(missing_diag)} rows without a diagonal cell, e.g. {missing_diag[:10]}",
        warn=True,
    )

    return tuple(checks)
