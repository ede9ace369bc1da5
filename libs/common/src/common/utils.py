from __future__ import annotations

from datetime import UTC, datetime


def now_utc_iso() -> str:
    return datetime.now(UTC).isoformat()


def normalize_skills(value: list[str] | str | None) -> list[str]:
    """Split a list or comma-separated string into trimmed, unique skills, keeping input order."""
    if value is None:
        return []
    raw = value.split(",") if isinstance(value, str) else value
    skills: list[str] = []
    for item in raw:
        skill = " ".join(str(item).split())
        if skill and skill not in skills:
            skills.append(skill)
    return skills


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)
