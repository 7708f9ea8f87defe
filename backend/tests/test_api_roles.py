# tests/test_api_roles.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from app.models.membership import Membership
from factories import add_membership, auth_headers, create_member, create_org, create_team, create_user


async def setup_team(db):
    org = await create_org(db)
    team = await create_team(db, org.id, "Core")
    leader = await create_member(db, org.id, "lead@example.com", role="leader", team_id=team.id)
    staff = await create_member(db, org.id, "staff@example.com", role="staff", team_id=team.id)
    return org, team, leader, staff


async def stored_role(db, user_id) -> str:
    res = await db.execute(select(Membership.role).where(Membership.user_id == user_id))
    return res.scalar_one()


@pytest.mark.asyncio
async def test_leader_promotes_team_member(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "HR"},
        headers=auth_headers(leader),
    )

    assert r.status_code == 200
    body = r.json()
    assert body["old_role"] == "staff"
    assert body["role"] == "hr"
    assert body["message"] == "User role updated to hr"

    r = await client.get(f"/api/v1/users/{staff.id}/role", headers=auth_headers(leader))
    assert r.status_code == 200
    body = r.json()
    assert body["role"] == "hr"
    assert body["rank"] == 4
    assert body["assigned_by"] == str(leader.id)


@pytest.mark.asyncio
async def test_leader_cannot_assign_protected_role(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "admin"},
        headers=auth_headers(leader),
    )

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_insufficient_authority"
    assert await stored_role(db, staff.id) == "staff"


@pytest.mark.asyncio
async def test_leader_cannot_assign_own_rank(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "leader"},
        headers=auth_headers(leader),
    )

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_self_escalation"
    assert await stored_role(db, staff.id) == "staff"


@pytest.mark.asyncio
async def test_leader_cannot_demote_a_peer_leader(client, db):
    org, team, leader, staff = await setup_team(db)
    peer = await create_member(db, org.id, "peer@example.com", role="leader", team_id=team.id)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{peer.id}/role",
        json={"new_role": "staff"},
        headers=auth_headers(leader),
    )

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_forbidden"
    assert await stored_role(db, peer.id) == "leader"


@pytest.mark.asyncio
async def test_leader_cannot_reach_other_teams(client, db):
    org, team, leader, staff = await setup_team(db)
    other_team = await create_team(db, org.id, "Elsewhere")
    stranger = await create_member(db, org.id, "far@example.com", role="staff", team_id=other_team.id)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{stranger.id}/role",
        json={"new_role": "collaborator"},
        headers=auth_headers(leader),
    )

    assert r.status_code == 404
    assert await stored_role(db, stranger.id) == "staff"


@pytest.mark.asyncio
async def test_role_manage_permission_is_required(client, db):
    org, team, leader, staff = await setup_team(db)
    hr = await create_member(db, org.id, "hr@example.com", role="hr", team_id=team.id)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "collaborator"},
        headers=auth_headers(hr),
    )

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_forbidden"
    assert await stored_role(db, staff.id) == "staff"


@pytest.mark.asyncio
async def test_admin_cannot_change_bod(client, db):
    org = await create_org(db)
    admin = await create_member(db, org.id, "admin@example.com", role="admin")
    bod = await create_member(db, org.id, "board@example.com", role="bod")
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{bod.id}/role",
        json={"new_role": "staff"},
        headers=auth_headers(admin),
    )

    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "rbac_forbidden"
    assert await stored_role(db, bod.id) == "bod"


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(client, db):
    org = await create_org(db)
    admin = await create_member(db, org.id, "admin@example.com", role="admin")
    staff = await create_member(db, org.id, "staff@example.com", role="staff")
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "wizard"},
        headers=auth_headers(admin),
    )

    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "rbac_unknown_role"
    assert await stored_role(db, staff.id) == "staff"


@pytest.mark.asyncio
async def test_bod_may_appoint_an_admin(client, db):
    org = await create_org(db)
    bod = await create_member(db, org.id, "board@example.com", role="bod")
    staff = await create_member(db, org.id, "staff@example.com", role="staff")
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "admin"},
        headers=auth_headers(bod),
    )

    assert r.status_code == 200
    assert r.json()["role"] == "admin"


@pytest.mark.asyncio
async def test_admin_appoints_a_team_leader(client, db):
    org, team, leader, staff = await setup_team(db)
    admin = await create_member(db, org.id, "admin@example.com", role="admin")
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{staff.id}/role",
        json={"new_role": "leader"},
        headers=auth_headers(admin),
    )

    assert r.status_code == 200
    assert r.json()["old_role"] == "staff"
    assert r.json()["role"] == "leader"
    assert await stored_role(db, staff.id) == "leader"


@pytest.mark.asyncio
async def test_inactive_membership_cannot_be_changed(client, db):
    org = await create_org(db)
    admin = await create_member(db, org.id, "admin@example.com", role="admin")
    former = await create_user(db, "former@example.com")
    await add_membership(db, org.id, former.id, role="staff", is_active=False)
    await db.commit()

    r = await client.put(
        f"/api/v1/users/{former.id}/role",
        json={"new_role": "leader"},
        headers=auth_headers(admin),
    )

    assert r.status_code == 404
    assert await stored_role(db, former.id) == "staff"


@pytest.mark.asyncio
async def test_leader_directory_is_team_plus_reports(client, db):
    org, team, leader, staff = await setup_team(db)
    other_team = await create_team(db, org.id, "Elsewhere")
    await create_member(
        db, org.id, "report@example.com", role="staff", team_id=other_team.id, manager_id=leader.id
    )
    await create_member(db, org.id, "far@example.com", role="staff", team_id=other_team.id)
    await db.commit()

    r = await client.get("/api/v1/users", headers=auth_headers(leader))

    assert r.status_code == 200
    emails = [m["email"] for m in r.json()]
    assert emails == ["lead@example.com", "report@example.com", "staff@example.com"]


@pytest.mark.asyncio
async def test_staff_cannot_list_directory(client, db):
    org, team, leader, staff = await setup_team(db)
    await db.commit()

    r = await client.get("/api/v1/users", headers=auth_headers(staff))

    assert r.status_code == 403
