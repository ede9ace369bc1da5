from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
import uuid
from contextlib import asynccontextmanager

from common.utils import now_utc_iso
from fastapi import Depends, FastAPI, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from matcher.auth import DEV_SECRET, TOKEN_HEADER, verify_token
from matcher.engine import RecommendationEngine
from matcher.errors import MatcherError, NotFoundError, RecommendationError, UnauthorizedError
from matcher.models import (
    Job,
    JobCreateRequest,
    JobUpdateRequest,
    MatchResult,
    MessageResponse,
    MetricsSnapshot,
    Profile,
    ProfileUpsertRequest,
    SeedJobsRequest,
    SeedJobsResponse,
    User,
)
from matcher.providers import (
    DEFAULT_HUGGINGFACE_MODEL,
    DEFAULT_OPENAI_MODEL,
    PROVIDER_HUGGINGFACE,
    PROVIDER_NONE,
    PROVIDER_OPENAI,
    CompletionProvider,
    build_provider,
)
from matcher.repository import MatcherRepository
from matcher.seed import sample_jobs

DEFAULT_DB_PATH = os.path.join(tempfile.gettempdir(), "jobmatch", "matcher.sqlite3")
DEFAULT_AI_TIMEOUT_SECONDS = 30.0
LOGGER = logging.getLogger("jobmatch.matcher")


class MetricsStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._totals = {"requests": 0, "errors": 0}
        self._endpoints: dict[str, dict[str, float | int]] = {}

    def observe(self, *, method: str, path: str, status_code: int, duration_ms: float) -> None:
        key = f"{method} {path}"
        bucket = f"{status_code // 100}xx"
        with self._lock:
            self._totals["requests"] += 1
            if status_code >= 400:
                self._totals["errors"] += 1
            endpoint = self._endpoints.setdefault(
                key,
                {
                    "count": 0,
                    "2xx": 0,
                    "4xx": 0,
                    "5xx": 0,
                    "latency_ms_sum": 0.0,
                    "latency_ms_avg": 0.0,
                },
            )
            endpoint["count"] = int(endpoint["count"]) + 1
            if bucket in ("2xx", "4xx", "5xx"):
                endpoint[bucket] = int(endpoint[bucket]) + 1
            endpoint["latency_ms_sum"] = float(endpoint["latency_ms_sum"]) + duration_ms
            endpoint["latency_ms_avg"] = (
                float(endpoint["latency_ms_sum"]) / int(endpoint["count"])
            )

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                generated_at=now_utc_iso(),
                totals=dict(self._totals),
                endpoints={key: dict(value) for key, value in self._endpoints.items()},
            )


def resolve_provider_name(explicit: str | None = None) -> str:
    name = (explicit or os.getenv("MATCHER_AI_PROVIDER", "")).strip().lower()
    if name:
        return name
    if os.getenv("OPENAI_API_KEY", "").strip():
        return PROVIDER_OPENAI
    if os.getenv("HUGGINGFACE_API_KEY", "").strip():
        return PROVIDER_HUGGINGFACE
    return PROVIDER_NONE


def resolve_timeout(explicit: float | None = None) -> float | None:
    if explicit is not None:
        timeout = explicit
    else:
        raw = os.getenv("MATCHER_AI_TIMEOUT_SECONDS", "").strip()
        timeout = float(raw) if raw else DEFAULT_AI_TIMEOUT_SECONDS
    return timeout if timeout > 0 else None


async def require_user(request: Request) -> User:
    user_id = verify_token(request.headers.get(TOKEN_HEADER), request.app.state.jwt_secret)
    user = await run_in_threadpool(request.app.state.repository.get_user, user_id)
    if user is None:
        raise UnauthorizedError("Token is not valid")
    request.state.user = user
    return user


def create_app(
    *,
    database_path: str | None = None,
    jwt_secret: str | None = None,
    provider: CompletionProvider | None = None,
    provider_name: str | None = None,
    ai_timeout_seconds: float | None = None,
) -> FastAPI:
    resolved_path = database_path or os.getenv("MATCHER_DB_PATH", DEFAULT_DB_PATH)
    resolved_secret = (jwt_secret or os.getenv("JWT_SECRET", "")).strip()
    if not resolved_secret:
        LOGGER.warning("JWT_SECRET is not set; using an insecure development secret")
        resolved_secret = DEV_SECRET

    timeout_seconds = resolve_timeout(ai_timeout_seconds)
    owns_provider = provider is None
    if provider is None:
        provider = build_provider(
            resolve_provider_name(provider_name),
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip() or None,
            openai_model=os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
            huggingface_api_key=os.getenv("HUGGINGFACE_API_KEY", "").strip() or None,
            huggingface_model=os.getenv("HUGGINGFACE_MODEL", DEFAULT_HUGGINGFACE_MODEL),
            timeout_seconds=timeout_seconds,
        )

    repository = MatcherRepository(database_path=resolved_path)
    engine = RecommendationEngine(
        repository,
        provider,
        timeout_seconds=timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(repository.connect)
        app.state.repository = repository
        app.state.engine = engine
        app.state.jwt_secret = resolved_secret
        app.state.metrics = MetricsStore()
        LOGGER.info("Matcher started with completion provider %s", provider.name)
        try:
            yield
        finally:
            if owns_provider:
                await provider.aclose()
            await run_in_threadpool(repository.close)

    app = FastAPI(title="JobMatch API", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(MatcherError)
    async def matcher_error_handler(request: Request, exc: MatcherError) -> JSONResponse:
        content: dict[str, str] = {"msg": exc.msg}
        if isinstance(exc, RecommendationError):
            content = {"msg": "Server error", "error": exc.msg}
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.middleware("http")
    async def observability_middleware(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            request.app.state.metrics.observe(
                method=request.method,
                path=request.url.path,
                status_code=500,
                duration_ms=duration_ms,
            )
            LOGGER.exception(
                json.dumps(
                    {
                        "event": "request_complete",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "status_code": 500,
                        "duration_ms": round(duration_ms, 3),
                        "error": str(exc),
                    }
                )
            )
            return JSONResponse(
                status_code=500,
                content={"msg": "Server error", "request_id": request_id},
                headers={"x-request-id": request_id},
            )

        duration_ms = (time.perf_counter() - started) * 1000
        request.app.state.metrics.observe(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        response.headers["x-request-id"] = request_id
        LOGGER.info(
            json.dumps(
                {
                    "event": "request_complete",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 3),
                    "source_ip": request.client.host if request.client else None,
                }
            )
        )
        return response

    @app.get("/", response_class=PlainTextResponse)
    async def index() -> str:
        return "Job Match API is running"

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "matcher"}

    @app.get("/metrics", response_model=MetricsSnapshot)
    async def metrics(request: Request) -> MetricsSnapshot:
        return request.app.state.metrics.snapshot()

    @app.get("/api/profile/me", response_model=Profile)
    async def get_current_profile(request: Request, user: User = Depends(require_user)) -> Profile:
        profile = await run_in_threadpool(request.app.state.repository.get_profile_by_user, user.id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    @app.post("/api/profile", response_model=Profile)
    async def upsert_profile(
        payload: ProfileUpsertRequest,
        request: Request,
        user: User = Depends(require_user),
    ) -> Profile:
        profile = await run_in_threadpool(
            request.app.state.repository.upsert_profile,
            user.id,
            payload,
        )
        LOGGER.info("Profile %s saved for user %s", profile.id, user.id)
        return profile

    @app.delete("/api/profile", response_model=MessageResponse)
    async def delete_profile(
        request: Request,
        user: User = Depends(require_user),
    ) -> MessageResponse:
        deleted = await run_in_threadpool(request.app.state.repository.delete_profile, user.id)
        if not deleted:
            LOGGER.info("No profile to delete for user %s", user.id)
        return MessageResponse(msg="Profile deleted")

    @app.get("/api/jobs", response_model=list[Job])
    async def list_jobs(request: Request) -> list[Job]:
        return await run_in_threadpool(request.app.state.repository.list_jobs)

    @app.post("/api/jobs/seed", response_model=SeedJobsResponse)
    async def seed_jobs(
        request: Request,
        payload: SeedJobsRequest | None = None,
    ) -> SeedJobsResponse:
        jobs = payload.jobs if payload and payload.jobs else sample_jobs()
        count = await run_in_threadpool(request.app.state.repository.replace_jobs, jobs)
        LOGGER.info("Job catalog replaced with %d jobs", count)
        return SeedJobsResponse(msg="Jobs seeded successfully", count=count)

    @app.get("/api/jobs/{job_id}", response_model=Job)
    async def get_job(job_id: str, request: Request) -> Job:
        job = await run_in_threadpool(request.app.state.repository.get_job, job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job

    @app.post("/api/jobs", response_model=Job)
    async def create_job(
        payload: JobCreateRequest,
        request: Request,
        user: User = Depends(require_user),
    ) -> Job:
        job = await run_in_threadpool(request.app.state.repository.create_job, payload)
        LOGGER.info("Job %s created by user %s", job.id, user.id)
        return job

    @app.put("/api/jobs/{job_id}", response_model=Job)
    async def update_job(
        job_id: str,
        payload: JobUpdateRequest,
        request: Request,
        user: User = Depends(require_user),
    ) -> Job:
        job = await run_in_threadpool(request.app.state.repository.update_job, job_id, payload)
        if job is None:
            raise NotFoundError("Job not found")
        LOGGER.info("Job %s updated by user %s", job.id, user.id)
        return job

    @app.delete("/api/jobs/{job_id}", response_model=MessageResponse)
    async def delete_job(
        job_id: str,
        request: Request,
        user: User = Depends(require_user),
    ) -> MessageResponse:
        deleted = await run_in_threadpool(request.app.state.repository.delete_job, job_id)
        if not deleted:
            raise NotFoundError("Job not found")
        LOGGER.info("Job %s removed by user %s", job_id, user.id)
        return MessageResponse(msg="Job removed")

    @app.get("/api/recommendations", response_model=list[MatchResult])
    async def recommendations(
        request: Request,
        response: Response,
        user: User = Depends(require_user),
    ) -> list[MatchResult]:
        recommendation = await request.app.state.engine.recommend(user.id)
        response.headers["x-recommendation-tier"] = recommendation.tier
        return recommendation.matches

    return app


app = create_app()
