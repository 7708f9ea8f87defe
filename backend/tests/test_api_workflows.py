# tests/test_api_workflows.py
from __future__ import annotations

import pytest

from factories import auth_headers, create_member, create_org, create_team

LEAVE = {
    "type": "annual",
    "start_date": "2026-03-02",
    "end_date": "2026-03-04",
    "reason": "Family trip",
}


async def setup_team(db):
    org = await create_org(db)
    team = await create_team(db, org.id, "Core")
    leader = await create_member(db, org.id, "lead@example.com", role="leader", team_id=team.id)
    staff = await create_member(db, org.id, "staff@example.com", role="staff", team_id=team.id)
    return org, team, leader, staff


# ---------------------------------------------------------
# Leave
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_leave_request_lifecycle(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.post("/api/v1/leave-requests", json=LEAVE, headers=auth_headers(staff))
    assert r.status_code == 201
    leave = r.json()
    assert leave["days"] == 3
    assert leave["status"] == "pending"
    assert leave["user_id"] == str(staff.id)

    # staff cannot decide
    r = await client.post(
        f"/api/v1/leave-requests/{leave['id']}/decision",
        json={"status": "approved"},
        headers=auth_headers(staff),
    )
    assert r.status_code == 403

    r = await client.post(
        f"/api/v1/leave-requests/{leave['id']}/decision",
        json={"status": "approved", "notes": "Enjoy"},
        headers=auth_headers(leader),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "approved"
    assert body["approved_by"] == str(leader.id)

    r = await client.post(
        f"/api/v1/leave-requests/{leave['id']}/decision",
        json={"status": "rejected"},
        headers=auth_headers(leader),
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_leave_end_before_start_is_rejected(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.post(
        "/api/v1/leave-requests",
        json={**LEAVE, "end_date": "2026-03-01"},
        headers=auth_headers(staff),
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_leader_cannot_approve_own_leave(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.post("/api/v1/leave-requests", json=LEAVE, headers=auth_headers(leader))
    assert r.status_code == 201

    r = await client.post(
        f"/api/v1/leave-requests/{r.json()['id']}/decision",
        json={"status": "approved"},
        headers=auth_headers(leader),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("requester_role", ["bod", "admin", "leader"])
async def test_leader_cannot_decide_leave_of_equal_or_higher_rank(client, db, requester_role):
    org, team, leader, staff = await setup_team(db)
    requester = await create_member(db, org.id, "senior@example.com", role=requester_role, team_id=team.id)
    await db.commit()

    r = await client.post("/api/v1/leave-requests", json=LEAVE, headers=auth_headers(requester))
    assert r.status_code == 201
    leave_id = r.json()["id"]

    r = await client.post(
        f"/api/v1/leave-requests/{leave_id}/decision",
        json={"status": "approved"},
        headers=auth_headers(leader),
    )
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_forbidden"

    r = await client.get("/api/v1/leave-requests", headers=auth_headers(requester))
    assert [x["status"] for x in r.json() if x["id"] == leave_id] == ["pending"]


@pytest.mark.asyncio
async def test_leader_cannot_decide_other_team_leave(client, db):
    org, team, leader, staff = await setup_team(db)
    other_team = await create_team(db, org.id, "Elsewhere")
    stranger = await create_member(db, org.id, "far@example.com", role="staff", team_id=other_team.id)
    await db.commit()

    r = await client.post("/api/v1/leave-requests", json=LEAVE, headers=auth_headers(stranger))
    assert r.status_code == 201

    r = await client.post(
        f"/api/v1/leave-requests/{r.json()['id']}/decision",
        json={"status": "approved"},
        headers=auth_headers(leader),
    )
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_admin_sees_leave_across_teams_hr_only_its_team(client, db):
    org, team, leader, staff = await setup_team(db)
    other_team = await create_team(db, org.id, "Elsewhere")
    stranger = await create_member(db, org.id, "far@example.com", role="staff", team_id=other_team.id)
    admin = await create_member(db, org.id, "admin@example.com", role="admin")
    hr = await create_member(db, org.id, "hr@example.com", role="hr", team_id=team.id)
    await db.commit()

    for user in (staff, stranger):
        r = await client.post("/api/v1/leave-requests", json=LEAVE, headers=auth_headers(user))
        assert r.status_code == 201

    r = await client.get("/api/v1/leave-requests", headers=auth_headers(admin))
    assert r.status_code == 200
    assert len(r.json()) == 2

    for viewer in (hr, leader):
        r = await client.get("/api/v1/leave-requests", headers=auth_headers(viewer))
        assert r.status_code == 200
        assert [x["user_id"] for x in r.json()] == [str(staff.id)]


# ---------------------------------------------------------
# Attendance
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_attendance_check_in_out_and_verify(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.post("/api/v1/attendance/check-in", headers=auth_headers(staff))
    assert r.status_code == 201
    record = r.json()

    r = await client.post("/api/v1/attendance/check-in", headers=auth_headers(staff))
    assert r.status_code == 409

    # someone else's record
    r = await client.post(f"/api/v1/attendance/{record['id']}/check-out", headers=auth_headers(leader))
    assert r.status_code == 404

    r = await client.post(f"/api/v1/attendance/{record['id']}/check-out", headers=auth_headers(staff))
    assert r.status_code == 200
    assert r.json()["check_out_at"] is not None

    r = await client.post(f"/api/v1/attendance/{record['id']}/verify", headers=auth_headers(staff))
    assert r.status_code == 403

    r = await client.post(f"/api/v1/attendance/{record['id']}/verify", headers=auth_headers(leader))
    assert r.status_code == 200
    assert r.json()["verified_by"] == str(leader.id)


@pytest.mark.asyncio
async def test_leader_cannot_verify_peer_leader_attendance(client, db):
    org, team, leader, staff = await setup_team(db)
    peer = await create_member(db, org.id, "peer@example.com", role="leader", team_id=team.id)
    await db.commit()

    r = await client.post("/api/v1/attendance/check-in", headers=auth_headers(peer))
    assert r.status_code == 201
    record_id = r.json()["id"]

    r = await client.post(f"/api/v1/attendance/{record_id}/verify", headers=auth_headers(leader))
    assert r.status_code == 403

    r = await client.get("/api/v1/attendance", headers=auth_headers(peer))
    assert [x["verified_by"] for x in r.json()] == [None]


@pytest.mark.asyncio
async def test_attendance_list_is_scoped(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    for user in (leader, staff):
        r = await client.post("/api/v1/attendance/check-in", headers=auth_headers(user))
        assert r.status_code == 201

    r = await client.get("/api/v1/attendance", headers=auth_headers(staff))
    assert [x["user_id"] for x in r.json()] == [str(staff.id)]

    r = await client.get("/api/v1/attendance", headers=auth_headers(leader))
    assert len(r.json()) == 2


# ---------------------------------------------------------
# Tasks
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_staff_creates_own_task_but_cannot_assign(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.post("/api/v1/tasks", json={"title": "Write notes"}, headers=auth_headers(staff))
    assert r.status_code == 201
    body = r.json()
    assert body["assignee_id"] == str(staff.id)
    assert body["team_id"] == str(team.id)

    r = await client.post(
        "/api/v1/tasks",
        json={"title": "For the boss", "assignee_id": str(leader.id)},
        headers=auth_headers(staff),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_leader_assigns_within_team_only(client, db):
    org, team, leader, staff = await setup_team(db)
    other_team = await create_team(db, org.id, "Elsewhere")
    stranger = await create_member(db, org.id, "far@example.com", role="staff", team_id=other_team.id)
    await db.commit()

    r = await client.post(
        "/api/v1/tasks",
        json={"title": "Review PR", "assignee_id": str(staff.id)},
        headers=auth_headers(leader),
    )
    assert r.status_code == 201
    assert r.json()["assignee_id"] == str(staff.id)

    r = await client.post(
        "/api/v1/tasks",
        json={"title": "Review PR", "assignee_id": str(stranger.id)},
        headers=auth_headers(leader),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_task_update_and_delete(client, db):
    org, team, leader, staff = await setup_team(db)
    admin = await create_member(db, org.id, "admin@example.com", role="admin")
    await db.commit()

    r = await client.post("/api/v1/tasks", json={"title": "Ship it"}, headers=auth_headers(staff))
    task_id = r.json()["id"]

    r = await client.patch(f"/api/v1/tasks/{task_id}", json={"status": "done"}, headers=auth_headers(staff))
    assert r.status_code == 200
    assert r.json()["completed_at"] is not None

    # leader lacks task.delete
    r = await client.delete(f"/api/v1/tasks/{task_id}", headers=auth_headers(leader))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/tasks/{task_id}", headers=auth_headers(admin))
    assert r.status_code == 204

    r = await client.delete(f"/api/v1/tasks/{task_id}", headers=auth_headers(admin))
    assert r.status_code == 404
