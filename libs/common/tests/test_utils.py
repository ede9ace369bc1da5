from __future__ import annotations

from datetime import datetime

import pytest
from common.utils import normalize_skills, now_utc_iso, round_half_up

pytestmark = pytest.mark.unit


def test_normalize_skills_splits_comma_separated_string() -> None:
    assert normalize_skills("python, sql ,  React  Native,") == ["python", "sql", "React Native"]


def test_normalize_skills_keeps_case_and_drops_duplicates() -> None:
    assert normalize_skills(["Python", "python", "Python", " "]) == ["Python", "python"]


def test_normalize_skills_returns_empty_list_for_none() -> None:
    assert normalize_skills(None) == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [(65.0, 65), (12.5, 13), (23.333, 23), (0.49, 0), (98.5, 99)],
)
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


def test_now_utc_iso_returns_parseable_utc_timestamp() -> None:
    parsed = datetime.fromisoformat(now_utc_iso())
    assert parsed.tzinfo is not None
    assert parsed.utcoffset() is not None
    assert parsed.utcoffset().total_seconds() == 0
