"""Error types raised (or reported) by the item-item CF core."""

from __future__ import annotations

from typing import Any


class ItemCFError(Exception):
    """Base class for item-item CF errors."""


class InvalidKeyError(ItemCFError, ValueError):
    """A non-canonical or malformed pair key reached the accumulator.

    Fatal: it means the upper-triangular invariant is broken.
    """

    def __init__(self, row: Any, col: Any, reason: str) -> None:
        self.row = row
        self.col = col
        self.reason = reason
        super().__init__(f"invalid pair key ({row!r}, {col!r}): {reason}")

    def __reduce__(self):
        return (self.__class__, (self.row, self.col, self.reason))


class MalformedRecordError(ItemCFError, ValueError):
    """A user record could not be decoded into item/rating pairs."""

    def __init__(self, reason: str, line_no: int | None = None) -> None:
        self.reason = reason
        self.line_no = line_no
        where = f"line {line_no}: " if line_no is not None else ""
        super().__init__(f"{where}{reason}")

    def __reduce__(self):
        return (self.__class__, (self.reason, self.line_no))


class DegenerateNormError(ItemCFError):
    """A cell whose row or column item has a zero (or missing) diagonal norm.

    Never raised by the core; the cell is dropped and an instance is handed to
    the caller's `on_degenerate` callback.
    """

    def __init__(self, row: int, col: int, diag_row: float, diag_col: float) -> None:
        self.row = row
        self.col = col
        self.diag_row = diag_row
        self.diag_col = diag_col
        super().__init__(
            f"cell ({row}, {col}) dropped: diag({row})={diag_row}, diag({col})={diag_col}"
        )

    def __reduce__(self):
        return (self.__class__, (self.row, self.col, self.diag_row, self.diag_col))
