"""CSV persistence for finalized similarity matrices (`row,col,value`, no header)."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pandas as pd

from ..item_cf.matrix import SparseMatrix


logger = logging.getLogger(__name__)

CSV_COLUMNS = ["row", "col", "value"]


def _compression_for(path: Path) -> str | None:
    return "gzip" if path.suffix == ".gz" else None


def _tmp_sibling(path: Path) -> Path:
    return path.with_name(f".{path.name}.{os.getpid()}.tmp")


def write_text_atomic(path: Path | str, text: str) -> Path:
    """Write `text` to `path` through a temporary sibling and `os.replace`."""
    path = Path(path)
    tmp_path = _tmp_sibling(path)
    try:
        tmp_path.write_text(text)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    return path


def write_csv_matrix(matrix: SparseMatrix, path: Path | str) -> Path:
    """Write one line per non-zero cell, sorted by (row, col).

    Output goes to a temporary sibling first and is moved into place only after
    it has been fully written, so a failure never leaves a partial file behind.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df = matrix.to_frame(sort=True)
    df = df[df["value"] != 0.0]

    tmp_path = _tmp_sibling(path)
    try:
        df.to_csv(tmp_path, header=False, index=False, compression=_compression_for(path))
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    logger.info("Wrote %d cells to %s", len(df), path)
    return path


def read_csv_matrix(path: Path | str) -> SparseMatrix:
    """Load a matrix written by `write_csv_matrix`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Matrix file not found: {path}")

    try:
        df = pd.read_csv(
            path,
            header=None,
            names=CSV_COLUMNS,
            dtype={"row": "int64", "col": "int64", "value": "float64"},
            compression=_compression_for(path),
        )
    except pd.errors.EmptyDataError:
        return SparseMatrix()

    return SparseMatrix.from_cells(
        zip(df["row"].tolist(), df["col"].tolist(), df["value"].tolist())
    )
