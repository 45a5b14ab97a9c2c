import uuid

from sqlalchemy import select

from tasktree.models.audit_log import AuditLog
from tasktree.models.enums import AuditAction

def auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

def test_only_owners_create_orgs(client, org_tree):
    for who in ("admin", "child_admin", "viewer"):
        r = client.post(
            "/organizations",
            json={"name": f"rogue-{who}", "parent_id": org_tree["root_id"]},
            headers=auth(org_tree[who]["access_token"]),
        )
        assert r.status_code == 403, who
        assert r.json()["detail"] == "Only owners can create organizations"

    assert client.post("/organizations", json={"name": "anon"}).status_code == 401

def test_owner_creates_nested_org(client, org_tree, db_session):
    owner = auth(org_tree["owner"]["access_token"])
    r = client.post("/organizations", json={"name": "Grandchild", "parent_id": org_tree["child_id"]}, headers=owner)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["parent_id"] == org_tree["child_id"]
    assert len(body["invite_code"]) == 6

    row = db_session.scalars(
        select(AuditLog).where(AuditLog.action == AuditAction.create, AuditLog.resource == "organization")
        .where(AuditLog.resource_id == body["id"])
    ).one()
    assert row.details == "Created organization: Grandchild"

    # the root admin now reaches the grandchild
    admin = auth(org_tree["admin"]["access_token"])
    r = client.post("/tasks", json={"title": "deep", "organization_id": body["id"]}, headers=admin)
    assert r.status_code == 200, r.text

def test_create_org_errors(client, org_tree):
    owner = auth(org_tree["owner"]["access_token"])
    r = client.post("/organizations", json={"name": "orphan", "parent_id": str(uuid.uuid4())}, headers=owner)
    assert r.status_code == 404

    assert client.post("/organizations", json={"name": "dup"}, headers=owner).status_code == 200
    assert client.post("/organizations", json={"name": "dup"}, headers=owner).status_code == 409
    assert client.post("/organizations", json={"name": ""}, headers=owner).status_code == 422

def test_list_orgs_is_public(client, org_tree):
    r = client.get("/organizations")
    assert r.status_code == 200
    by_id = {o["id"]: o for o in r.json()}
    assert {org_tree["root_id"], org_tree["child_id"]} <= set(by_id)
    assert by_id[org_tree["child_id"]]["parent_id"] == org_tree["root_id"]
    assert all("invite_code" not in o for o in r.json())

def test_get_org(client, org_tree):
    viewer = auth(org_tree["viewer"]["access_token"])
    assert client.get(f"/organizations/{org_tree['child_id']}").status_code == 401
    r = client.get(f"/organizations/{org_tree['child_id']}", headers=viewer)
    assert r.status_code == 200
    assert r.json()["id"] == org_tree["child_id"]
    assert client.get(f"/organizations/{uuid.uuid4()}", headers=viewer).status_code == 404
