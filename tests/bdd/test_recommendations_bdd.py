from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from matcher.auth import issue_token
from matcher.main import create_app
from pytest_bdd import given, parsers, scenario, then, when

pytestmark = pytest.mark.bdd

JWT_SECRET = "bdd-secret-that-is-long-enough-for-hs256"


class ScriptedProvider:
    name = "scripted"

    def __init__(self) -> None:
        self.reply: str | None = None

    async def complete(self, prompt: str) -> str:
        if self.reply is None:
            raise ConnectionError("model endpoint unreachable")
        return self.reply

    async def aclose(self) -> None:
        return None


@scenario(
    "features/recommendations.feature",
    "Fall back to local scoring when the model is unreachable",
)
def test_fallback_when_model_unreachable() -> None:
    pass


@scenario(
    "features/recommendations.feature",
    "Use the model's ranking when it returns a JSON array",
)
def test_model_ranking_is_used() -> None:
    pass


@scenario("features/recommendations.feature", "Recover job ids from a garbled model reply")
def test_garbled_reply_is_scraped() -> None:
    pass


@scenario("features/recommendations.feature", "Reject a request without a token")
def test_anonymous_request_is_rejected() -> None:
    pass


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def client(tmp_path: Path, provider: ScriptedProvider):
    app = create_app(
        database_path=str(tmp_path / "bdd.sqlite3"),
        jwt_secret=JWT_SECRET,
        provider=provider,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def context() -> dict[str, object]:
    return {}


@given("a job catalog with a remote python role and an onsite sql role")
def given_catalog(client: TestClient) -> None:
    response = client.post(
        "/api/jobs/seed",
        json={
            "jobs": [
                {"id": "python-role", "title": "Backend Engineer", "company": "Acme",
                 "location": "Remote", "skills": ["python", "java"], "jobType": "remote"},
                {"id": "sql-role", "title": "Database Admin", "company": "Tables Ltd",
                 "location": "Leeds", "skills": ["sql"], "jobType": "onsite"},
            ]
        },
    )
    assert response.status_code == 200


@given("a signed-in candidate who knows python and sql and prefers remote work")
def given_candidate(client: TestClient, context: dict[str, object]) -> None:
    user = client.app.state.repository.create_user("candidate@example.com", "Candidate")
    headers = {"x-auth-token": issue_token(user.id, JWT_SECRET)}
    response = client.post(
        "/api/profile",
        headers=headers,
        json={
            "name": "Candidate",
            "location": "Remote",
            "yearsOfExperience": 4,
            "skills": "python, sql",
            "preferredJobType": "remote",
        },
    )
    assert response.status_code == 200
    context["headers"] = headers


@given("the language model is unreachable")
def given_model_unreachable(provider: ScriptedProvider) -> None:
    provider.reply = None


@given(parsers.parse("the language model ranks the sql role first with score {score:d}"))
def given_model_ranks_sql_first(provider: ScriptedProvider, score: int) -> None:
    provider.reply = "Here you go:\n" + json.dumps(
        [
            {"id": "sql-role", "title": "DBA", "company": "Tables", "matchScore": score,
             "matchReasons": ["SQL experience", "Steady on-call"]},
            {"id": "python-role", "title": "Backend", "company": "Acme", "matchScore": score - 10,
             "matchReasons": ["Python experience", "Remote"]},
        ]
    )


@given("the language model replies with garbled text mentioning both roles")
def given_model_garbled(provider: ScriptedProvider) -> None:
    provider.reply = 'Best: {"id": "python-role", why: python} next {"id": "sql-role" ...'


@when("the candidate asks for recommendations", target_fixture="response")
def when_candidate_asks(client: TestClient, context: dict[str, object]):
    return client.get("/api/recommendations", headers=context["headers"])


@when("an anonymous visitor asks for recommendations", target_fixture="response")
def when_anonymous_asks(client: TestClient):
    return client.get("/api/recommendations")


@then("the response is successful")
def then_response_is_successful(response) -> None:
    assert response.status_code == 200


@then("the response is unauthorized")
def then_response_is_unauthorized(response) -> None:
    assert response.status_code == 401
    assert response.json() == {"msg": "No token, authorization denied"}


@then(parsers.parse('the recommendations were produced by the "{tier}" tier'))
def then_tier_matches(response, tier: str) -> None:
    assert response.headers["x-recommendation-tier"] == tier


@then(parsers.parse("the match scores are {scores}"))
def then_scores_match(response, scores: str) -> None:
    expected = [int(score) for score in scores.split(",")]
    assert [item["matchScore"] for item in response.json()] == expected


@then(parsers.parse('the top recommendation is "{title}"'))
def then_top_recommendation_matches(response, title: str) -> None:
    assert response.json()[0]["title"] == title


@then("every recommendation embeds the stored job")
def then_job_details_are_stored_records(client: TestClient, response) -> None:
    for item in response.json():
        stored = client.get(f"/api/jobs/{item['id']}").json()
        assert item["jobDetails"] == stored
