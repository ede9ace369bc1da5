from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any

from common.utils import now_utc_iso

from matcher.models import (
    Job,
    JobCreateRequest,
    JobUpdateRequest,
    Profile,
    ProfileUpsertRequest,
    SeedJob,
    User,
)

JOB_COLUMNS = """
    id,
    title,
    company,
    location,
    description,
    skills_json,
    job_type,
    salary,
    created_at,
    updated_at
"""

PROFILE_COLUMNS = """
    id,
    user_id,
    name,
    location,
    years_of_experience,
    skills_json,
    preferred_job_type,
    created_at,
    updated_at
"""


def new_id() -> str:
    return uuid.uuid4().hex


class MatcherRepository:
    def __init__(self, database_path: str) -> None:
        self.database_path = Path(database_path)
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise RuntimeError("Database connection is not initialized")
        return self._connection

    def connect(self) -> None:
        with self._lock:
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.database_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys=ON")
            self._connection.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT NOT NULL,
                    password_hash TEXT,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL UNIQUE REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    location TEXT NOT NULL,
                    years_of_experience INTEGER NOT NULL CHECK (years_of_experience >= 0),
                    skills_json TEXT NOT NULL,
                    preferred_job_type TEXT NOT NULL DEFAULT 'any'
                        CHECK (preferred_job_type IN ('remote', 'onsite', 'any')),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS jobs (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    company TEXT NOT NULL,
                    location TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    skills_json TEXT NOT NULL,
                    job_type TEXT NOT NULL CHECK (job_type IN ('remote', 'onsite', 'hybrid')),
                    salary TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            self._connection.commit()

    def close(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            self._connection.close()
            self._connection = None

    def create_user(self, email: str, name: str, password_hash: str | None = None) -> User:
        with self._lock:
            user_id = new_id()
            self.connection.execute(
                """
                INSERT INTO users (id, email, name, password_hash, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, email.strip().lower(), name.strip(), password_hash, now_utc_iso()),
            )
            self.connection.commit()
            user = self.get_user(user_id)
            if user is None:
                raise RuntimeError(f"User {user_id} was not persisted")
            return user

    def get_user(self, user_id: str) -> User | None:
        with self._lock:
            row = self.connection.execute(
                "SELECT id, email, name, created_at FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return User(**dict(row))

    def get_profile_by_user(self, user_id: str) -> Profile | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {PROFILE_COLUMNS} FROM profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return self._to_profile(row)

    def upsert_profile(self, user_id: str, payload: ProfileUpsertRequest) -> Profile:
        with self._lock:
            now = now_utc_iso()
            self.connection.execute(
                """
                INSERT INTO profiles (
                    id,
                    user_id,
                    name,
                    location,
                    years_of_experience,
                    skills_json,
                    preferred_job_type,
                    created_at,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    name = excluded.name,
                    location = excluded.location,
                    years_of_experience = excluded.years_of_experience,
                    skills_json = excluded.skills_json,
                    preferred_job_type = excluded.preferred_job_type,
                    updated_at = excluded.updated_at
                """,
                (
                    new_id(),
                    user_id,
                    payload.name,
                    payload.location,
                    payload.years_of_experience,
                    json.dumps(payload.skills),
                    payload.preferred_job_type,
                    now,
                    now,
                ),
            )
            self.connection.commit()
            profile = self.get_profile_by_user(user_id)
            if profile is None:
                raise RuntimeError(f"Profile for user {user_id} was not persisted")
            return profile

    def delete_profile(self, user_id: str) -> bool:
        with self._lock:
            cursor = self.connection.execute(
                "DELETE FROM profiles WHERE user_id = ?",
                (user_id,),
            )
            self.connection.commit()
            return cursor.rowcount > 0

    def list_jobs(self) -> list[Job]:
        with self._lock:
            cursor = self.connection.execute(
                f"SELECT {JOB_COLUMNS} FROM jobs ORDER BY created_at, rowid"
            )
            return [self._to_job(row) for row in cursor.fetchall()]

    def get_job(self, job_id: str) -> Job | None:
        with self._lock:
            row = self.connection.execute(
                f"SELECT {JOB_COLUMNS} FROM jobs WHERE id = ?",
                (job_id,),
            ).fetchone()
            if row is None:
                return None
            return self._to_job(row)

    def create_job(self, payload: JobCreateRequest, job_id: str | None = None) -> Job:
        with self._lock:
            job_id = job_id or new_id()
            self._insert_job(job_id, payload, now_utc_iso())
            self.connection.commit()
            job = self.get_job(job_id)
            if job is None:
                raise RuntimeError(f"Job {job_id} was not persisted")
            return job

    def update_job(self, job_id: str, payload: JobUpdateRequest) -> Job | None:
        with self._lock:
            changes: dict[str, Any] = payload.model_dump(exclude_unset=True)
            if "skills" in changes:
                changes["skills_json"] = json.dumps(changes.pop("skills") or [])
            # NOT NULL columns only accept explicit values.
            changes = {
                column: value
                for column, value in changes.items()
                if value is not None or column == "salary"
            }
            if not changes:
                return self.get_job(job_id)

            changes["updated_at"] = now_utc_iso()
            assignments = ", ".join(f"{column} = ?" for column in changes)
            cursor = self.connection.execute(
                f"UPDATE jobs SET {assignments} WHERE id = ?",
                (*changes.values(), job_id),
            )
            self.connection.commit()
            if cursor.rowcount == 0:
                return None
            return self.get_job(job_id)

    def delete_job(self, job_id: str) -> bool:
        with self._lock:
            cursor = self.connection.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
            self.connection.commit()
            return cursor.rowcount > 0

    def replace_jobs(self, jobs: list[SeedJob]) -> int:
        with self._lock:
            now = now_utc_iso()
            try:
                self.connection.execute("DELETE FROM jobs")
                for job in jobs:
                    self._insert_job(job.id or new_id(), job, now)
            except sqlite3.Error:
                self.connection.rollback()
                raise
            self.connection.commit()
            return len(jobs)

    def _insert_job(self, job_id: str, payload: JobCreateRequest, now: str) -> None:
        self.connection.execute(
            """
            INSERT INTO jobs (
                id,
                title,
                company,
                location,
                description,
                skills_json,
                job_type,
                salary,
                created_at,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                job_id,
                payload.title.strip(),
                payload.company.strip(),
                payload.location.strip(),
                payload.description.strip(),
                json.dumps(payload.skills),
                payload.job_type,
                payload.salary,
                now,
                now,
            ),
        )

    def _to_profile(self, row: sqlite3.Row) -> Profile:
        return Profile(
            id=row["id"],
            user=row["user_id"],
            name=row["name"],
            location=row["location"],
            years_of_experience=row["years_of_experience"],
            skills=json.loads(row["skills_json"]),
            preferred_job_type=row["preferred_job_type"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _to_job(self, row: sqlite3.Row) -> Job:
        return Job(
            id=row["id"],
            title=row["title"],
            company=row["company"],
            location=row["location"],
            description=row["description"],
            skills=json.loads(row["skills_json"]),
            job_type=row["job_type"],
            salary=row["salary"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
