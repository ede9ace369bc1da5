from __future__ import annotations

from typing import Any, Literal

from common.utils import normalize_skills
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

PreferredJobType = Literal["remote", "onsite", "any"]
JobType = Literal["remote", "onsite", "hybrid"]

MIN_MATCH_REASONS = 2
MAX_MATCH_REASONS = 3


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_skills(value: Any) -> Any:
    if value is None or isinstance(value, (str, list)):
        return normalize_skills(value)
    return value


def _coerce_salary(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class User(CamelModel):
    id: str
    email: str
    name: str
    created_at: str


class ProfileUpsertRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    location: str = Field(..., min_length=1, max_length=120)
    years_of_experience: int = Field(..., ge=0, le=80)
    skills: list[str] = Field(default_factory=list)
    preferred_job_type: PreferredJobType = "any"

    @field_validator("name", "location")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, value: Any) -> Any:
        return _coerce_skills(value)


class Profile(CamelModel):
    id: str
    user: str
    name: str
    location: str
    years_of_experience: int
    skills: list[str]
    preferred_job_type: PreferredJobType
    created_at: str
    updated_at: str


class JobCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    company: str = Field(..., min_length=1, max_length=200)
    location: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    skills: list[str] = Field(default_factory=list)
    job_type: JobType = "onsite"
    salary: str | None = None

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, value: Any) -> Any:
        return _coerce_skills(value)

    @field_validator("salary", mode="before")
    @classmethod
    def salary_as_text(cls, value: Any) -> Any:
        return _coerce_salary(value)


class SeedJob(JobCreateRequest):
    id: str | None = Field(default=None, min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")


class JobUpdateRequest(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    company: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    skills: list[str] | None = None
    job_type: JobType | None = None
    salary: str | None = None

    @field_validator("skills", mode="before")
    @classmethod
    def split_skills(cls, value: Any) -> Any:
        return _coerce_skills(value)

    @field_validator("salary", mode="before")
    @classmethod
    def salary_as_text(cls, value: Any) -> Any:
        return _coerce_salary(value)


class Job(CamelModel):
    id: str
    title: str
    company: str
    location: str
    description: str
    skills: list[str]
    job_type: JobType
    salary: str | None = None
    created_at: str
    updated_at: str


class SeedJobsRequest(CamelModel):
    jobs: list[SeedJob] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_job_ids(self) -> SeedJobsRequest:
        seen: set[str] = set()
        for job in self.jobs:
            if job.id is None:
                continue
            if job.id in seen:
                raise ValueError(f"Duplicate job id in seed payload: {job.id}")
            seen.add(job.id)
        return self


class SeedJobsResponse(CamelModel):
    msg: str
    count: int


class RankedMatch(CamelModel):
    """One ranked pick, either produced locally or read from a model reply."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    title: str = ""
    company: str = ""
    match_score: int = Field(default=0, ge=0, le=100)
    match_reasons: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("match_score", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().rstrip("%")
            try:
                value = float(value)
            except ValueError:
                return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, min(100, int(round(value))))
        return value

    @field_validator("match_reasons", mode="before")
    @classmethod
    def reasons_as_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [str(reason) for reason in value if str(reason).strip()][:MAX_MATCH_REASONS]
        return value


class MatchResult(CamelModel):
    id: str
    title: str
    company: str
    match_score: int = Field(..., ge=0, le=100)
    match_reasons: list[str] = Field(
        ..., min_length=MIN_MATCH_REASONS, max_length=MAX_MATCH_REASONS
    )
    job_details: Job


class MessageResponse(BaseModel):
    msg: str


class MetricsSnapshot(BaseModel):
    generated_at: str
    totals: dict[str, int]
    endpoints: dict[str, dict[str, float | int]]
