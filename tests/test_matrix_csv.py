from __future__ import annotations

import gzip
from pathlib import Path

import pandas as pd
import pytest

from itemsim.item_cf.matrix import SparseMatrix
from itemsim.store.matrix_csv import read_csv_matrix, write_csv_matrix


def _matrix() -> SparseMatrix:
    return SparseMatrix({(2, 1): 0.25, (1, 1): 1.0, (1, 2): 0.25, (2, 2): 1.0, (3, 3): 0.0})


def test_write_plain_csv_one_line_per_nonzero_cell(tmp_path: Path) -> None:
    out = write_csv_matrix(_matrix(), tmp_path / "sim.csv")

    lines = out.read_text().splitlines()
    assert lines == ["1,1,1.0", "1,2,0.25", "2,1,0.25", "2,2,1.0"]


def test_write_gzip_and_read_back(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "sim.csv.gz"
    write_csv_matrix(_matrix(), path)

    with gzip.open(path, "rt") as f:
        assert f.readline().strip() == "1,1,1.0"

    back = read_csv_matrix(path)
    assert back.get(1, 2) == pytest.approx(0.25)
    assert (3, 3) not in back
    assert len(back) == 4


def test_large_ids_survive(tmp_path: Path) -> None:
    big = 2**63 - 1
    path = write_csv_matrix(SparseMatrix({(-5, big): 0.5}), tmp_path / "sim.csv")
    assert read_csv_matrix(path).get(-5, big) == pytest.approx(0.5)


def test_empty_matrix_round_trip(tmp_path: Path) -> None:
    path = write_csv_matrix(SparseMatrix(), tmp_path / "empty.csv")
    assert path.exists()
    assert len(read_csv_matrix(path)) == 0


def test_failed_write_leaves_no_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(self, *args, **kwargs):  # noqa: ANN001
        raise OSError("disk full")

    monkeypatch.setattr(pd.DataFrame, "to_csv", _boom)
    with pytest.raises(OSError):
        write_csv_matrix(_matrix(), tmp_path / "sim.csv")

    assert list(tmp_path.iterdir()) == []


def test_read_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_csv_matrix(tmp_path / "missing.csv")
