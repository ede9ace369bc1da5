from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Literal

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError

from matcher.errors import NotFoundError, RecommendationError, UpstreamError
from matcher.models import MIN_MATCH_REASONS, Job, MatchResult, Profile, RankedMatch
from matcher.providers import CompletionProvider, complete_with_deadline
from matcher.repository import MatcherRepository
from matcher.scoring import DEFAULT_LIMIT, score_matches

LOGGER = logging.getLogger("jobmatch.matcher.engine")

Tier = Literal["ai", "id_scrape", "fallback"]

ID_PATTERN = re.compile(r'"id"\s*:\s*"([^"]+)"')
SCRAPED_TOP_SCORE = 95
SCRAPED_SCORE_STEP = 5

PROMPT_TEMPLATE = """
You are an AI job matcher. Your task is to find the top 3 job matches for a candidate based on their profile and available job listings.

Candidate Profile:
- Name: {name}
- Location: {location}
- Years of Experience: {years}
- Skills: {skills}
- Preferred Job Type: {job_type}

Available Jobs:
{jobs}

Please analyze the candidate's profile and the available jobs, then return the top 3 job matches with the following format:
[
  {{
    "id": "job_id",
    "title": "job_title",
    "company": "company_name",
    "matchScore": 85,
    "matchReasons": ["reason1", "reason2", "reason3"]
  }},
  ...
]

The matchScore should be between 0-100 and represent how well the candidate matches the job requirements.
The matchReasons should include 2-3 specific reasons why this job is a good match for the candidate.
Return only the JSON array.
"""


@dataclass
class Recommendation:
    tier: Tier
    matches: list[MatchResult]


def build_prompt(profile: Profile, jobs: list[Job]) -> str:
    jobs_data = [
        {
            "id": job.id,
            "title": job.title,
            "company": job.company,
            "location": job.location,
            "description": job.description,
            "skills": job.skills,
            "jobType": job.job_type,
            "salary": job.salary,
        }
        for job in jobs
    ]
    return PROMPT_TEMPLATE.format(
        name=profile.name,
        location=profile.location,
        years=profile.years_of_experience,
        skills=", ".join(profile.skills),
        job_type=profile.preferred_job_type,
        jobs=json.dumps(jobs_data, indent=2),
    ).strip()


def extract_json_array(text: str) -> str | None:
    """Return the first balanced ``[...]`` substring, skipping brackets inside string literals."""
    start = text.find("[")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # unbalanced from this opening bracket; try the next one
        start = text.find("[", start + 1)
    return None


def parse_ai_matches(
    text: str,
    known_ids: set[str],
    *,
    limit: int = DEFAULT_LIMIT,
) -> list[RankedMatch]:
    candidate = extract_json_array(text)
    if candidate is None:
        raise UpstreamError("No JSON array found in completion")
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise UpstreamError(f"Completion array is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise UpstreamError("Completion JSON is not an array")

    matches: list[RankedMatch] = []
    seen: set[str] = set()
    for item in payload:
        try:
            match = RankedMatch.model_validate(item)
        except ValidationError as exc:
            raise UpstreamError(f"Completion entry has an unexpected shape: {exc}") from exc
        if match.id not in known_ids or match.id in seen:
            LOGGER.info("Dropping completion entry for unknown or repeated job id %s", match.id)
            continue
        seen.add(match.id)
        matches.append(match)
        if len(matches) == limit:
            break

    if not matches:
        raise UpstreamError("Completion named no known jobs")
    return matches


def generic_reasons(job: Job) -> list[str]:
    return [
        f"Your profile lines up with the {job.title} role at {job.company}",
        f"This {job.job_type} position was ranked as a strong fit for your experience",
    ]


def pad_reasons(reasons: list[str], job: Job) -> list[str]:
    """Top up a short reason list with templated reasons for ``job``."""
    padded = list(reasons)
    for reason in generic_reasons(job):
        if len(padded) >= MIN_MATCH_REASONS:
            break
        if reason not in padded:
            padded.append(reason)
    return padded


def scrape_match_ids(
    text: str,
    jobs_by_id: dict[str, Job],
    *,
    limit: int = DEFAULT_LIMIT,
) -> list[RankedMatch]:
    ids: list[str] = []
    for job_id in ID_PATTERN.findall(text):
        if job_id in jobs_by_id and job_id not in ids:
            ids.append(job_id)
        if len(ids) == limit:
            break

    matches: list[RankedMatch] = []
    for rank, job_id in enumerate(ids):
        job = jobs_by_id[job_id]
        matches.append(
            RankedMatch(
                id=job.id,
                title=job.title,
                company=job.company,
                match_score=SCRAPED_TOP_SCORE - rank * SCRAPED_SCORE_STEP,
                match_reasons=generic_reasons(job),
            )
        )
    return matches


class RecommendationEngine:
    def __init__(
        self,
        repository: MatcherRepository,
        provider: CompletionProvider,
        *,
        timeout_seconds: float | None = 30.0,
        limit: int = DEFAULT_LIMIT,
    ) -> None:
        self.repository = repository
        self.provider = provider
        self.timeout_seconds = timeout_seconds
        self.limit = limit

    async def recommend(self, user_id: str) -> Recommendation:
        profile = await run_in_threadpool(self.repository.get_profile_by_user, user_id)
        if profile is None:
            raise NotFoundError("Profile not found")

        jobs = await run_in_threadpool(self.repository.list_jobs)
        if not jobs:
            raise NotFoundError("No jobs available")

        tier, ranked = await self._rank(profile, jobs)
        matches = await self._attach_job_details(ranked)
        if not matches:
            raise RecommendationError("None of the ranked jobs could be loaded")

        LOGGER.info(
            "Recommendations for user %s served by tier %s (%d matches)",
            user_id,
            tier,
            len(matches),
        )
        return Recommendation(tier=tier, matches=matches)

    async def _rank(self, profile: Profile, jobs: list[Job]) -> tuple[Tier, list[RankedMatch]]:
        jobs_by_id = {job.id: job for job in jobs}
        completion: str | None = None
        try:
            completion = await complete_with_deadline(
                self.provider,
                build_prompt(profile, jobs),
                self.timeout_seconds,
            )
            return "ai", parse_ai_matches(completion, set(jobs_by_id), limit=self.limit)
        except UpstreamError as exc:
            LOGGER.warning("Completion tier failed: %s", exc.msg)
        except Exception:
            LOGGER.warning("Completion provider raised unexpectedly", exc_info=True)

        if completion:
            try:
                scraped = scrape_match_ids(completion, jobs_by_id, limit=self.limit)
            except Exception:
                LOGGER.warning("Id scrape of completion failed", exc_info=True)
            else:
                if scraped:
                    return "id_scrape", scraped
                LOGGER.warning("No known job ids found in completion")

        try:
            return "fallback", score_matches(profile, jobs, limit=self.limit)
        except Exception as exc:
            LOGGER.exception("Local scoring failed")
            raise RecommendationError(str(exc)) from exc

    async def _attach_job_details(self, ranked: list[RankedMatch]) -> list[MatchResult]:
        matches: list[MatchResult] = []
        for match in ranked:
            job = await run_in_threadpool(self.repository.get_job, match.id)
            if job is None:
                LOGGER.warning("Ranked job %s disappeared before enrichment", match.id)
                continue
            matches.append(
                MatchResult(
                    id=job.id,
                    title=job.title,
                    company=job.company,
                    match_score=match.match_score,
                    match_reasons=pad_reasons(match.match_reasons, job),
                    job_details=job,
                )
            )
        return matches
