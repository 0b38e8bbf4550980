from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `import itemsim...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from itemsim.schemas import Rating, UserRecord  # noqa: E402


def make_user(items: list[int], *, rating: float = 1.0, user_id: str = "u") -> UserRecord:
    return UserRecord(userId=user_id, ratings=[Rating(item=i, rating=rating) for i in items])


@pytest.fixture
def scenario_users() -> list[UserRecord]:
    return [make_user([1, 2], user_id="a"), make_user([1, 2], user_id="b"), make_user([3], user_id="c")]
