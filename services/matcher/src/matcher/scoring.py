from __future__ import annotations

from common.utils import round_half_up

from matcher.models import Job, Profile, RankedMatch

SKILL_WEIGHT = 0.7
JOB_TYPE_BONUS = 30
MAX_LOCAL_SCORE = 99
DEFAULT_LIMIT = 3


def matching_skills(profile: Profile, job: Job) -> list[str]:
    profile_skills = set(profile.skills)
    matched: list[str] = []
    for skill in job.skills:
        if skill in profile_skills and skill not in matched:
            matched.append(skill)
    return matched


def job_type_matches(profile: Profile, job: Job) -> bool:
    return profile.preferred_job_type == "any" or profile.preferred_job_type == job.job_type


def skill_match_score(profile: Profile, matched: list[str]) -> float:
    if not profile.skills:
        return 0.0
    return len(matched) / len(profile.skills) * 100


def build_reasons(profile: Profile, job: Job, matched: list[str], type_match: bool) -> list[str]:
    if matched:
        skills_reason = f"Your skills in {', '.join(matched)} match this job's requirements"
    else:
        skills_reason = (
            f"This role is a chance to grow into {', '.join(job.skills[:3])}"
            if job.skills
            else "This role is a chance to broaden your skill set"
        )

    if profile.preferred_job_type == "any":
        type_reason = f"This {job.job_type} position fits your openness to any job type"
    elif type_match:
        type_reason = f"This {job.job_type} position matches your preferred job type"
    else:
        type_reason = (
            f"This {job.job_type} position differs from your preferred "
            f"{profile.preferred_job_type} work"
        )

    if job.location.strip().lower() == profile.location.strip().lower():
        location_reason = f"The job is located in {job.location}, where you are based"
    else:
        location_reason = f"The job is located in {job.location}"

    return [skills_reason, type_reason, location_reason]


def score_job(profile: Profile, job: Job) -> RankedMatch:
    matched = matching_skills(profile, job)
    type_match = job_type_matches(profile, job)
    raw_score = skill_match_score(profile, matched) * SKILL_WEIGHT + (
        JOB_TYPE_BONUS if type_match else 0
    )
    return RankedMatch(
        id=job.id,
        title=job.title,
        company=job.company,
        match_score=min(round_half_up(raw_score), MAX_LOCAL_SCORE),
        match_reasons=build_reasons(profile, job, matched, type_match),
    )


def score_matches(
    profile: Profile,
    jobs: list[Job],
    *,
    limit: int = DEFAULT_LIMIT,
) -> list[RankedMatch]:
    """Rank jobs by skill overlap and job-type fit without leaving the process.

    Ties keep catalog order. Scores are capped at 99; a full 100 is never produced locally.
    """
    ranked = [score_job(profile, job) for job in jobs]
    ranked.sort(key=lambda item: item.match_score, reverse=True)
    return ranked[:limit]
