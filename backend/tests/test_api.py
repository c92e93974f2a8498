"""
Adaptive Learning Engine - API Tests
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient

from learning_engine.core.security import Role
from learning_engine.schemas.common import DifficultyLevel, QuestionType

PREFIX = "/api/v1"


@pytest_asyncio.fixture
async def catalog(add_content, add_edge):
    await add_content("L1", topics=["algebra"], difficulty=0.3, estimated_time=30)
    await add_content("L2", topics=["algebra"], difficulty=0.5, estimated_time=45)
    await add_edge("L2", requires="L1", minimum_score=80)


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_requests_need_a_valid_token(client: AsyncClient, catalog):
    response = await client.get(f"{PREFIX}/progression/access/lesson/L1")
    assert response.status_code in (401, 403)

    response = await client.get(
        f"{PREFIX}/progression/access/lesson/L1",
        headers={"Authorization": "Bearer garbage"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_progress_flow_unlocks_content(client: AsyncClient, catalog, auth_headers):
    headers = auth_headers("s1")

    response = await client.get(f"{PREFIX}/progression/access/lesson/L2", headers=headers)
    assert response.status_code == 200
    assert response.json()["granted"] is False

    response = await client.post(f"{PREFIX}/progression/progress", headers=headers, json={
        "student_id": "s1",
        "content_id": "L1",
        "content_type": "lesson",
        "status": "completed",
        "score": 85,
    })
    assert response.status_code == 200
    assert response.json()["unlocked_content_ids"] == ["L2"]

    response = await client.get(f"{PREFIX}/progression/access/lesson/L2", headers=headers)
    assert response.json()["granted"] is True


@pytest.mark.asyncio
async def test_students_cannot_touch_other_students(client: AsyncClient, catalog, auth_headers):
    response = await client.post(f"{PREFIX}/progression/progress", headers=auth_headers("s1"), json={
        "student_id": "s2",
        "content_id": "L1",
        "content_type": "lesson",
        "status": "completed",
    })
    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"

    response = await client.post(f"{PREFIX}/progression/blocks", headers=auth_headers("s1"), json={
        "student_id": "s1", "content_id": "L1", "reason": "nope",
    })
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_instructor_block_and_unblock(client: AsyncClient, catalog, auth_headers):
    instructor = auth_headers("t1", Role.INSTRUCTOR)

    response = await client.post(f"{PREFIX}/progression/blocks", headers=instructor, json={
        "student_id": "s1", "content_id": "L1", "reason": "Academic integrity review",
    })
    assert response.status_code == 201

    response = await client.get(f"{PREFIX}/progression/access/lesson/L1", headers=auth_headers("s1"))
    assert response.json()["blocked"] is True

    response = await client.get(f"{PREFIX}/progression/blocks", params={"student_id": "s1"}, headers=instructor)
    assert [b["content_id"] for b in response.json()] == ["L1"]

    response = await client.delete(f"{PREFIX}/progression/blocks/s1/lesson/L1", headers=instructor)
    assert response.status_code == 200
    assert response.json()["granted"] is True

    response = await client.delete(f"{PREFIX}/progression/blocks/s1/lesson/L1", headers=instructor)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_error_kinds_map_to_status_codes(client: AsyncClient, catalog, auth_headers):
    headers = auth_headers("s1")

    response = await client.get(f"{PREFIX}/progression/access/lesson/missing", headers=headers)
    assert response.status_code == 404

    response = await client.post(f"{PREFIX}/assessments/initial", headers=headers, json={
        "subject_area": "astronomy", "topics": ["stars"], "question_count": 3,
    })
    assert response.status_code == 409
    assert response.json()["error"] == "configuration_error"

    response = await client.post(f"{PREFIX}/roadmaps", headers=headers, json={
        "target_skills": ["algebra"], "time_constraints": {"hours_per_week": 0},
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_assessment_and_gap_analysis(client: AsyncClient, catalog, add_question, auth_headers):
    await add_question("math", ["algebra"], DifficultyLevel.BEGINNER)
    await add_question("math", ["algebra"], DifficultyLevel.ADVANCED)
    essay = await add_question("math", ["algebra"], question_type=QuestionType.ESSAY, correct_answer=None)
    headers = auth_headers("s1")

    response = await client.post(f"{PREFIX}/assessments/initial", headers=headers, json={
        "subject_area": "math", "topics": ["algebra"], "question_count": 3,
    })
    assert response.status_code == 201
    assessment = response.json()

    answers = [
        {"question_id": q["id"], "student_answer": "B", "points_awarded": 1}
        for q in assessment["questions"]
    ]
    response = await client.post(
        f"{PREFIX}/assessments/{assessment['id']}/attempts", headers=headers, json={"answers": answers},
    )
    assert response.status_code == 201
    attempt = response.json()
    # Self-awarded points on the essay are ignored
    assert attempt["score"] == 0.0

    response = await client.post(
        f"{PREFIX}/knowledge/assessments/{assessment['id']}/attempts/{attempt['id']}/analyze",
        headers=headers,
    )
    assert response.status_code == 200
    assert [g["topic"] for g in response.json()["gaps"]] == ["algebra"]

    response = await client.get(f"{PREFIX}/knowledge/gaps", params={"student_id": "s1"},
                                headers=auth_headers("t1", Role.INSTRUCTOR))
    assert [g["topic"] for g in response.json()] == ["algebra"]

    response = await client.post(
        f"{PREFIX}/assessments/attempts/{attempt['id']}/grade",
        headers=auth_headers("t1", Role.INSTRUCTOR),
        json={"corrections": {str(essay.id): 1}},
    )
    assert response.status_code == 200
    assert response.json()["graded_by"] == "t1"


@pytest.mark.asyncio
async def test_recommendations_engagement_and_roadmap(client: AsyncClient, catalog, auth_headers):
    headers = auth_headers("s1")

    response = await client.post(f"{PREFIX}/engagement/events", headers=headers, json={"events": [
        {"content_id": "L1", "content_type": "lesson", "interaction_type": "complete", "duration": 600},
    ]})
    assert response.status_code == 202
    assert response.json()["preferred_content_type"] == "lesson"

    response = await client.get(f"{PREFIX}/engagement/pattern", headers=headers)
    assert response.json()["event_count"] == 1

    response = await client.post(f"{PREFIX}/recommendations", headers=headers, json={"limit": 5})
    assert response.status_code == 200
    recommendations = response.json()
    assert [r["content_id"] for r in recommendations] == ["L1"]

    response = await client.get(
        f"{PREFIX}/recommendations/{recommendations[0]['id']}/explanation", headers=headers,
    )
    assert response.status_code == 200
    explanation = response.json()
    assert sum(f["contribution"] for f in explanation["factors"].values()) == pytest.approx(explanation["score"])

    response = await client.get(
        f"{PREFIX}/recommendations/{recommendations[0]['id']}/explanation", headers=auth_headers("s2"),
    )
    assert response.status_code == 403

    response = await client.get(f"{PREFIX}/roadmaps/active", headers=headers)
    assert response.status_code == 404

    response = await client.post(f"{PREFIX}/roadmaps", headers=headers, json={"target_skills": ["algebra"]})
    assert response.status_code == 200
    assert [s["content_id"] for s in response.json()["learning_path"]] == ["L1", "L2"]

    response = await client.patch(f"{PREFIX}/roadmaps/active/status", headers=headers, json={"status": "paused"})
    assert response.json()["status"] == "paused"
    response = await client.get(f"{PREFIX}/roadmaps/active", headers=headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_alternative_paths_and_roadmap_adjustment(client: AsyncClient, catalog, auth_headers):
    body = {"current_content_id": "L2", "struggling_topics": ["algebra"]}

    response = await client.post(f"{PREFIX}/roadmaps/alternative-paths", headers=auth_headers("s1"), json=body)
    assert response.status_code == 200
    paths = response.json()
    assert [s["content_id"] for s in paths[0]["alternative_content"]] == ["L1"]
    assert paths[0]["difficulty_adjustment"] == "easier"
    assert paths[0]["estimated_time_difference"] == -15

    response = await client.post(
        f"{PREFIX}/roadmaps/alternative-paths?student_id=s1", headers=auth_headers("s2"), json=body,
    )
    assert response.status_code == 403
    response = await client.post(
        f"{PREFIX}/roadmaps/alternative-paths?student_id=s1", headers=auth_headers("t1", Role.INSTRUCTOR), json=body,
    )
    assert response.status_code == 200

    response = await client.post(
        f"{PREFIX}/roadmaps/active/adjust/00000000-0000-0000-0000-000000000000", headers=auth_headers("s1"),
    )
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
