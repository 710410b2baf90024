import pytest
from httpx import AsyncClient

from copo.models.academics import Department, Subject, SubjectAssignment
from copo.models.system import ActivityLog
from copo.models.user import Role, User
from copo.permissions import role_allowed, parse_role


@pytest.mark.parametrize("role,allowed,expected", [
    (Role.ADMIN, {Role.ADMIN}, True),
    (Role.ADMIN, {Role.HOD, Role.FACULTY}, False),
    (Role.HOD, {Role.ADMIN, Role.HOD}, True),
    (Role.STUDENT, {Role.ADMIN, Role.HOD, Role.FACULTY}, False),
    (None, {Role.ADMIN}, False),
])
def test_role_allowed_is_a_flat_allow_list(role, allowed, expected):
    assert role_allowed(role, frozenset(allowed)) is expected


def test_parse_role_rejects_unknown_values():
    assert parse_role("hod") is Role.HOD
    assert parse_role("superuser") is None


async def test_anonymous_request_is_unauthorized(client: AsyncClient):
    response = await client.post("/api/departments", json={"name": "CSE"})

    assert response.status_code == 401


async def test_wrong_role_is_forbidden_and_nothing_changes(faculty_client: AsyncClient, fetch_all):
    response = await faculty_client.post("/api/departments", json={"name": "CSE"})

    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden: Insufficient permissions"
    assert await fetch_all(Department) == []
    assert await fetch_all(ActivityLog) == []


async def test_roles_do_not_inherit(admin_client: AsyncClient, subject_data, fetch_all):
    # Subject writes are HOD only, admin is not a superset
    response = await admin_client.post("/api/subjects", json=subject_data)

    assert response.status_code == 403
    assert await fetch_all(Subject) == []


async def test_successful_mutation_logs_exactly_once(admin_client: AsyncClient, admin_user: User, fetch_all):
    response = await admin_client.post("/api/departments", json={"name": "CSE"})
    assert response.status_code == 201
    department_id = response.json()["id"]

    logs = await fetch_all(ActivityLog)
    assert len(logs) == 1
    assert logs[0].user_id == admin_user.id
    assert logs[0].action == "created"
    assert logs[0].entity_type == "department"
    assert logs[0].entity_id == department_id
    assert logs[0].details == f"created department with ID {department_id}"


async def test_failed_mutation_is_not_logged(admin_client: AsyncClient, fetch_all):
    await admin_client.post("/api/departments", json={"name": "CSE"})
    response = await admin_client.post("/api/departments", json={"name": "CSE"})

    assert response.status_code == 409
    assert len(await fetch_all(ActivityLog)) == 1


async def test_delete_is_logged_with_path_id(admin_client: AsyncClient, fetch_all):
    created = (await admin_client.post("/api/departments", json={"name": "ECE"})).json()

    response = await admin_client.delete(f"/api/departments/{created['id']}")

    assert response.status_code == 200
    logs = await fetch_all(ActivityLog, ActivityLog.action == "deleted")
    assert len(logs) == 1
    assert logs[0].entity_id == created["id"]


async def test_reads_are_not_logged(admin_client: AsyncClient, fetch_all):
    await admin_client.get("/api/users")
    await admin_client.get("/api/departments")

    assert await fetch_all(ActivityLog) == []


async def test_activity_logs_admin_only_and_limit_validated(admin_client: AsyncClient, hod_client: AsyncClient):
    for name in ("CSE", "ECE", "MECH"):
        await admin_client.post("/api/departments", json={"name": name})

    assert (await hod_client.get("/api/activity-logs")).status_code == 403
    assert (await admin_client.get("/api/activity-logs", params={"limit": "abc"})).status_code == 400

    response = await admin_client.get("/api/activity-logs", params={"limit": 2})
    assert response.status_code == 200
    assert len(response.json()) == 2


async def test_users_patch_refuses_password(admin_client: AsyncClient, faculty_user: User):
    response = await admin_client.patch(f"/api/users/{faculty_user.id}", json={"password": "hacked1"})

    assert response.status_code == 400


async def test_users_by_unknown_role(admin_client: AsyncClient):
    response = await admin_client.get("/api/users/role/dean")

    assert response.status_code == 400


async def test_cannot_delete_self(admin_client: AsyncClient, admin_user: User):
    response = await admin_client.delete(f"/api/users/{admin_user.id}")

    assert response.status_code == 400


async def test_cannot_delete_hod_still_heading_department(admin_client: AsyncClient, hod_user: User, fetch_all):
    await admin_client.post("/api/departments", json={"name": "CSE", "hodId": hod_user.id})

    response = await admin_client.delete(f"/api/users/{hod_user.id}")

    assert response.status_code == 400
    assert len(await fetch_all(User, User.id == hod_user.id)) == 1


async def test_hod_repointing_is_kept_consistent(admin_client: AsyncClient, make_user, fetch_all):
    first_hod = await make_user(Role.HOD)
    second_hod = await make_user(Role.HOD)

    cse = (await admin_client.post("/api/departments", json={"name": "CSE", "hodId": first_hod.id})).json()
    ece = (await admin_client.post("/api/departments", json={"name": "ECE"})).json()

    [hod] = await fetch_all(User, User.id == first_hod.id)
    assert hod.department_id == cse["id"]

    # Moving the first HOD to ECE releases CSE
    response = await admin_client.patch(f"/api/departments/{ece['id']}", json={"hodId": first_hod.id})
    assert response.status_code == 200
    assert response.json()["hodId"] == first_hod.id

    departments = {d.id: d for d in await fetch_all(Department)}
    assert departments[cse["id"]].hod_id is None
    [hod] = await fetch_all(User, User.id == first_hod.id)
    assert hod.department_id == ece["id"]

    # Replacing the HOD of ECE clears the previous HOD's department
    await admin_client.patch(f"/api/departments/{ece['id']}", json={"hodId": second_hod.id})

    [old, new] = await fetch_all(User, User.id.in_([first_hod.id, second_hod.id]))
    assert old.department_id is None
    assert new.department_id == ece["id"]


async def test_unknown_hod_leaves_department_untouched(admin_client: AsyncClient, fetch_all):
    response = await admin_client.post("/api/departments", json={"name": "CSE", "hodId": 999})

    assert response.status_code == 400
    assert await fetch_all(Department) == []


async def test_subject_code_is_unique(hod_client: AsyncClient, subject_data):
    assert (await hod_client.post("/api/subjects", json=subject_data)).status_code == 201

    response = await hod_client.post("/api/subjects", json=subject_data)

    assert response.status_code == 409


async def test_duplicate_assignment_conflicts(
    hod_client: AsyncClient, hod_user: User, faculty_user: User, student_user: User, subject_data, fetch_all
):
    subject = (await hod_client.post("/api/subjects", json=subject_data)).json()
    payload = {"subjectId": subject["id"], "facultyId": faculty_user.id}

    response = await hod_client.post("/api/subject-assignments", json=payload)
    assert response.status_code == 201
    assignment = response.json()
    assert assignment["assignedBy"] == hod_user.id

    response = await hod_client.post("/api/subject-assignments", json=payload)
    assert response.status_code == 409
    assert response.json()["detail"] == "Faculty is already assigned to this subject"
    assert len(await fetch_all(SubjectAssignment)) == 1

    response = await hod_client.post(
        "/api/subject-assignments", json={"subjectId": subject["id"], "facultyId": student_user.id}
    )
    assert response.status_code == 400

    response = await hod_client.post(
        "/api/subject-assignments", json={"subjectId": 999, "facultyId": faculty_user.id}
    )
    assert response.status_code == 404

    response = await hod_client.delete(f"/api/subject-assignments/{assignment['id']}")
    assert response.status_code == 204
    assert await fetch_all(SubjectAssignment) == []


async def test_subjects_for_faculty(hod_client: AsyncClient, faculty_user: User, subject_data, client: AsyncClient):
    subject = (await hod_client.post("/api/subjects", json=subject_data)).json()
    await hod_client.post("/api/subject-assignments", json={"subjectId": subject["id"], "facultyId": faculty_user.id})

    response = await client.get(f"/api/subjects/faculty/{faculty_user.id}")

    assert response.status_code == 200
    assert [s["code"] for s in response.json()] == [subject_data["code"]]


async def test_hod_cannot_promote_users(hod_client: AsyncClient, faculty_user: User, fetch_all):
    response = await hod_client.patch(f"/api/users/{faculty_user.id}", json={"role": "admin"})

    assert response.status_code == 403
    stored = (await fetch_all(User, User.id == faculty_user.id))[0]
    assert stored.role == Role.FACULTY.value


async def test_hod_cannot_edit_admins(hod_client: AsyncClient, admin_user: User):
    response = await hod_client.patch(f"/api/users/{admin_user.id}", json={"name": "Someone Else"})

    assert response.status_code == 403


async def test_hod_edits_faculty(hod_client: AsyncClient, faculty_user: User):
    response = await hod_client.patch(f"/api/users/{faculty_user.id}", json={"name": "Renamed"})

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
