from datetime import timedelta

import pytest
from httpx import AsyncClient

from copo import database
from copo.models.system import ActivityLog
from copo.models.user import OtpStatus, PasswordResetOtp, Role, User
from copo.services.otp import OtpService
from copo.utils.time_utils import get_local_time


async def test_first_registration_bootstraps_admin(client: AsyncClient, fetch_all):
    response = await client.get("/api/system/has-users")
    assert response.json() == {"hasUsers": False}

    response = await client.post(
        "/api/register",
        json={"username": "admin1", "password": "x", "role": "student"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "admin"
    assert "password" not in data

    # The bootstrap request also starts a session
    me = await client.get("/api/user")
    assert me.status_code == 200
    assert me.json()["username"] == "admin1"

    # Nobody was logged in when the request started
    assert await fetch_all(ActivityLog) == []


async def test_anonymous_registration_closed_once_users_exist(client: AsyncClient, admin_user: User, fetch_all):
    response = await client.post("/api/register", json={"username": "intruder", "password": "secret1"})

    assert response.status_code == 403
    assert len(await fetch_all(User)) == 1


async def test_hod_cannot_register_admin(hod_client: AsyncClient, fetch_all):
    response = await hod_client.post(
        "/api/register",
        json={"username": "boss", "password": "secret1", "role": "admin", "departmentId": 1}
    )

    assert response.status_code == 403
    assert await fetch_all(User, User.username == "boss") == []
    assert await fetch_all(ActivityLog) == []


async def test_hod_registration_requires_department(hod_client: AsyncClient):
    response = await hod_client.post(
        "/api/register",
        json={"username": "fac", "password": "secret1", "role": "faculty"}
    )

    assert response.status_code == 400


async def test_hod_registers_faculty_and_is_audited(hod_client: AsyncClient, hod_user: User, fetch_all):
    response = await hod_client.post(
        "/api/register",
        json={"username": "fac", "password": "secret1", "role": "faculty", "departmentId": 4}
    )

    assert response.status_code == 201
    created = response.json()
    assert created["role"] == "faculty"
    assert created["departmentId"] == 4

    logs = await fetch_all(ActivityLog)
    assert len(logs) == 1
    assert logs[0].user_id == hod_user.id
    assert logs[0].action == "created"
    assert logs[0].entity_type == "user"
    assert logs[0].entity_id == created["id"]


async def test_faculty_cannot_register_users(faculty_client: AsyncClient):
    response = await faculty_client.post("/api/register", json={"username": "x", "password": "secret1"})

    assert response.status_code == 403


async def test_duplicate_username_rejected(admin_client: AsyncClient, admin_user: User):
    response = await admin_client.post(
        "/api/register",
        json={"username": admin_user.username, "password": "secret1"}
    )

    assert response.status_code == 400
    assert "already exists" in response.json()["detail"]


async def test_login_invalid_credentials(client: AsyncClient, admin_user: User):
    response = await client.post("/api/login", json={"username": admin_user.username, "password": "wrong"})

    assert response.status_code == 401
    assert (await client.get("/api/user")).status_code == 401


async def test_malformed_body_is_bad_request(client: AsyncClient):
    response = await client.post("/api/login", json={"username": "only"})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request data"
    assert body["errors"]


async def test_logout_clears_session(admin_client: AsyncClient):
    assert (await admin_client.get("/api/user")).status_code == 200

    await admin_client.post("/api/logout")

    assert (await admin_client.get("/api/user")).status_code == 401


async def test_profile_password_change_needs_current_password(faculty_client: AsyncClient):
    response = await faculty_client.patch("/api/user/profile", json={"password": "newpass1"})
    assert response.status_code == 400

    response = await faculty_client.patch(
        "/api/user/profile",
        json={"password": "newpass1", "currentPassword": "password123", "name": "Renamed"}
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"


@pytest.fixture
def fixed_otp(monkeypatch):
    monkeypatch.setattr(OtpService, "generate_code", staticmethod(lambda length=6: "123456"))
    return "123456"


async def test_password_reset_over_otp(client: AsyncClient, make_user, fixed_otp, fetch_all):
    user = await make_user(Role.STUDENT, whatsapp_number="9876543210")

    response = await client.post("/api/reset-password/request", json={"username": user.username})
    assert response.status_code == 200
    assert response.json()["userId"] == user.id

    otps = await fetch_all(PasswordResetOtp, PasswordResetOtp.user_id == user.id)
    assert len(otps) == 1
    assert otps[0].otp_hash != fixed_otp

    # Cannot skip verification
    response = await client.post("/api/reset-password/complete", json={"userId": user.id, "newPassword": "brandnew"})
    assert response.status_code == 400

    response = await client.post("/api/reset-password/verify", json={"userId": user.id, "otp": "000000"})
    assert response.status_code == 400
    assert "Invalid OTP" in response.json()["detail"]

    response = await client.post("/api/reset-password/verify", json={"userId": user.id, "otp": fixed_otp})
    assert response.status_code == 200

    response = await client.post("/api/reset-password/complete", json={"userId": user.id, "newPassword": "brandnew"})
    assert response.status_code == 200

    response = await client.post("/api/login", json={"username": user.username, "password": "brandnew"})
    assert response.status_code == 200

    # A used code cannot be replayed
    response = await client.post("/api/reset-password/complete", json={"userId": user.id, "newPassword": "another1"})
    assert response.status_code == 400

    otps = await fetch_all(PasswordResetOtp, PasswordResetOtp.user_id == user.id)
    assert otps[0].status == OtpStatus.USED.value

    actions = [log.action for log in await fetch_all(ActivityLog, ActivityLog.user_id == user.id)]
    assert actions == ["requested", "verified", "reset"]


async def test_expired_otp_rejected(client: AsyncClient, make_user, fixed_otp):
    user = await make_user(Role.FACULTY, whatsapp_number="+91 98765 43210")
    await client.post("/api/reset-password/request", json={"username": user.username})

    async with database.SessionLocal() as session:
        otp = await OtpService.latest(session, user.id)
        otp.expires_at = get_local_time() - timedelta(minutes=1)
        await session.commit()

    response = await client.post("/api/reset-password/verify", json={"userId": user.id, "otp": fixed_otp})

    assert response.status_code == 400
    assert "expired" in response.json()["detail"]


async def test_reset_request_without_whatsapp_number(client: AsyncClient, student_user: User):
    response = await client.post("/api/reset-password/request", json={"username": student_user.username})

    assert response.status_code == 400
