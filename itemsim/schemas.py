"""Pydantic schemas for decoded user rating records."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .item_cf.matrix import INT64_MAX, INT64_MIN


class Rating(BaseModel):
    """One (item, rating) pair from a user's record."""

    item: int = Field(..., strict=True, ge=INT64_MIN, le=INT64_MAX, description="Opaque 64-bit item id.")
    rating: float = Field(..., allow_inf_nan=False, description="User rating for the item.")

    @field_validator("rating", mode="before")
    @classmethod
    def _reject_bool_rating(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("rating must be a number, not a boolean")
        return v


class UserRecord(BaseModel):
    """A user line: `{"userId": "xxx", "ratings": [{"item": 123, "rating": 2.3}, ...]}`.

    Only `ratings` is consumed by the similarity build; `userId` is kept for
    logging.
    """

    userId: Optional[str] = None
    ratings: list[Rating]

    @field_validator("userId", mode="before")
    @classmethod
    def _coerce_user_id(cls, v: Any) -> Any:
        # userId is informational only; any JSON shape is kept as text.
        if v is None or isinstance(v, str):
            return v
        return str(v)
