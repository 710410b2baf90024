from httpx import AsyncClient

from copo.models.academics import CoursePlan
from copo.models.system import ActivityLog
from copo.models.user import Role


PLAN_CONTENT = {
    "overview": "Linear and non-linear structures",
    "objectives": ["Analyse complexity"],
    "modules": [{"title": "Trees", "topics": ["BST", "AVL"], "duration": 8}],
    "assessmentMethods": [{"type": "Quiz", "weightage": 20, "description": "Weekly"}],
    "references": ["CLRS"],
}


async def create_subject(hod_client: AsyncClient, subject_data) -> dict:
    response = await hod_client.post("/api/subjects", json=subject_data)
    assert response.status_code == 201
    return response.json()


async def test_plan_lookup_by_subject_404_when_missing(client: AsyncClient):
    response = await client.get("/api/course-plans/subject/42")

    assert response.status_code == 404


async def test_owner_creates_and_updates_plan(
    hod_client: AsyncClient, faculty_client: AsyncClient, faculty_user, subject_data, fetch_all
):
    subject = await create_subject(hod_client, subject_data)

    response = await faculty_client.post(
        "/api/course-plans",
        json={"subjectId": subject["id"], "content": PLAN_CONTENT, "facultyId": 999}
    )
    assert response.status_code == 201
    plan = response.json()
    assert plan["facultyId"] == faculty_user.id
    assert plan["status"] == "draft"
    assert plan["content"]["modules"][0]["title"] == "Trees"
    assert plan["content"]["assessmentMethods"][0]["type"] == "Quiz"

    response = await faculty_client.patch(
        f"/api/course-plans/{plan['id']}",
        json={"status": "published", "facultyId": 999, "lastUpdated": "2000-01-01T00:00:00"}
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated["status"] == "published"
    assert updated["facultyId"] == faculty_user.id
    assert updated["lastUpdated"] >= plan["lastUpdated"]
    assert not updated["lastUpdated"].startswith("2000")

    response = await faculty_client.get(f"/api/course-plans/subject/{subject['id']}")
    assert response.json()["id"] == plan["id"]


async def test_one_plan_per_subject(hod_client: AsyncClient, faculty_client: AsyncClient, subject_data):
    subject = await create_subject(hod_client, subject_data)
    payload = {"subjectId": subject["id"], "content": PLAN_CONTENT}

    assert (await faculty_client.post("/api/course-plans", json=payload)).status_code == 201
    assert (await faculty_client.post("/api/course-plans", json=payload)).status_code == 409


async def test_only_owner_may_update(
    hod_client: AsyncClient, faculty_client: AsyncClient, make_user, login_as, subject_data, fetch_all
):
    subject = await create_subject(hod_client, subject_data)
    plan = (await faculty_client.post(
        "/api/course-plans", json={"subjectId": subject["id"], "content": PLAN_CONTENT}
    )).json()

    other = await make_user(Role.FACULTY)
    other_client = await login_as(other)

    response = await other_client.patch(f"/api/course-plans/{plan['id']}", json={"status": "hijacked"})

    assert response.status_code == 403
    assert response.json()["detail"] == "You can only update your own course plans"
    [stored] = await fetch_all(CoursePlan)
    assert stored.status == "draft"
    assert await fetch_all(ActivityLog, ActivityLog.user_id == other.id) == []


async def test_hod_cannot_write_course_plans(hod_client: AsyncClient, subject_data):
    subject = await create_subject(hod_client, subject_data)

    response = await hod_client.post("/api/course-plans", json={"subjectId": subject["id"], "content": PLAN_CONTENT})

    assert response.status_code == 403


async def test_update_unknown_plan(faculty_client: AsyncClient):
    response = await faculty_client.patch("/api/course-plans/999", json={"status": "x"})

    assert response.status_code == 404
