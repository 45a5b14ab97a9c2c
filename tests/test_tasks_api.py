import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from tasktree.models.audit_log import AuditLog
from tasktree.models.enums import AuditAction

def auth(jwt: str) -> dict[str, str]:
    return {"authorization": f"bearer {jwt}"}

def jwt_of(member: dict) -> str:
    return member["access_token"]

def create_task(client, who: dict, title: str, org_id: str | None = None, **extra):
    body = {"title": title, **extra}
    if org_id is not None:
        body["organization_id"] = org_id
    return client.post("/tasks", json=body, headers=auth(jwt_of(who)))

def titles(r) -> set[str]:
    assert r.status_code == 200, r.text
    return {t["title"] for t in r.json()}

def audit_rows(db: Session, resource_id: str, action: AuditAction) -> list[AuditLog]:
    q = select(AuditLog).where(AuditLog.resource_id == resource_id, AuditLog.action == action)
    return list(db.scalars(q).all())

def test_requires_authentication(client):
    assert client.get("/tasks").status_code == 401
    assert client.get("/tasks", headers=auth("garbage")).status_code == 401

def test_create_defaults_to_own_org_and_owner(client, org_tree, db_session):
    viewer = org_tree["viewer"]
    r = create_task(client, viewer, "mine")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["org_id"] == org_tree["root_id"]
    assert body["owner_id"] == viewer["user"]["id"]
    assert body["status"] == "todo"
    assert body["category"] == "work"

    rows = audit_rows(db_session, body["id"], AuditAction.create)
    assert len(rows) == 1
    assert rows[0].details == "Created task: mine"
    assert rows[0].success is True

def test_create_in_org_tree(client, org_tree):
    # viewer: own org only
    assert create_task(client, org_tree["viewer"], "x", org_id=org_tree["child_id"]).status_code == 403
    assert create_task(client, org_tree["viewer"], "x", org_id=str(uuid.uuid4())).status_code == 403

    # admin: own org + descendants
    r = create_task(client, org_tree["admin"], "in child", org_id=org_tree["child_id"])
    assert r.status_code == 200, r.text
    assert r.json()["org_id"] == org_tree["child_id"]

    # child admin cannot reach up the tree
    r = create_task(client, org_tree["child_admin"], "in root", org_id=org_tree["root_id"])
    assert r.status_code == 403
    assert r.json()["detail"] == "Cannot create tasks in this organization"

def test_list_is_scoped_by_role(client, org_tree, db_session):
    assert create_task(client, org_tree["admin"], "admin-root").status_code == 200
    assert create_task(client, org_tree["admin"], "admin-child", org_id=org_tree["child_id"]).status_code == 200
    assert create_task(client, org_tree["viewer"], "viewer-own").status_code == 200
    assert create_task(client, org_tree["child_admin"], "child-own").status_code == 200

    everything = {"admin-root", "admin-child", "viewer-own", "child-own"}
    assert titles(client.get("/tasks", headers=auth(jwt_of(org_tree["owner"])))) == everything
    assert titles(client.get("/tasks", headers=auth(jwt_of(org_tree["admin"])))) == everything
    assert titles(client.get("/tasks", headers=auth(jwt_of(org_tree["child_admin"])))) == {"admin-child", "child-own"}
    assert titles(client.get("/tasks", headers=auth(jwt_of(org_tree["viewer"])))) == {"viewer-own"}

    listed = db_session.scalars(
        select(AuditLog).where(AuditLog.action == AuditAction.read, AuditLog.details.like("Listed tasks%"))
    ).all()
    by_user = {str(r.user_id): r for r in listed}
    assert len(listed) == len(by_user) == 4
    assert all(r.resource_id is None and r.resource == "task" and r.success for r in listed)
    assert by_user[org_tree["owner"]["user"]["id"]].details == "Listed tasks (4 results)"
    assert by_user[org_tree["child_admin"]["user"]["id"]].details == "Listed tasks (2 results)"
    assert by_user[org_tree["viewer"]["user"]["id"]].details == "Listed tasks (1 results)"

def test_list_filters_and_ordering(client, org_tree):
    owner = org_tree["owner"]
    create_task(client, owner, "Quarterly REPORT", priority=1, category="work")
    create_task(client, owner, "groceries", priority=5, category="personal", description="weekly report run")
    create_task(client, owner, "dentist", priority=3, category="personal", status="done")

    r = client.get("/tasks", headers=auth(jwt_of(owner)))
    assert [t["title"] for t in r.json()] == ["groceries", "dentist", "Quarterly REPORT"]

    assert titles(client.get("/tasks?search=report", headers=auth(jwt_of(owner)))) == {
        "Quarterly REPORT",
        "groceries",
    }
    assert titles(client.get("/tasks?category=personal", headers=auth(jwt_of(owner)))) == {"groceries", "dentist"}
    assert titles(client.get("/tasks?status=done", headers=auth(jwt_of(owner)))) == {"dentist"}
    assert titles(client.get("/tasks?search=100%25", headers=auth(jwt_of(owner)))) == set()

def test_read_one(client, org_tree, db_session):
    root_task = create_task(client, org_tree["admin"], "root task").json()["id"]
    child_task = create_task(client, org_tree["admin"], "child task", org_id=org_tree["child_id"]).json()["id"]
    own_task = create_task(client, org_tree["viewer"], "own").json()["id"]

    assert client.get(f"/tasks/{own_task}", headers=auth(jwt_of(org_tree["viewer"]))).status_code == 200
    r = client.get(f"/tasks/{root_task}", headers=auth(jwt_of(org_tree["viewer"])))
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied: you can only view your own tasks"

    assert client.get(f"/tasks/{child_task}", headers=auth(jwt_of(org_tree["owner"]))).status_code == 200
    assert client.get(f"/tasks/{child_task}", headers=auth(jwt_of(org_tree["child_admin"]))).status_code == 200
    assert client.get(f"/tasks/{root_task}", headers=auth(jwt_of(org_tree["child_admin"]))).status_code == 403

    # one success row per allowed read; denied reads leave none
    [row] = audit_rows(db_session, own_task, AuditAction.read)
    assert row.success is True
    assert row.resource == "task"
    assert str(row.user_id) == org_tree["viewer"]["user"]["id"]
    assert {str(r.user_id) for r in audit_rows(db_session, child_task, AuditAction.read)} == {
        org_tree["owner"]["user"]["id"],
        org_tree["child_admin"]["user"]["id"],
    }
    assert audit_rows(db_session, root_task, AuditAction.read) == []

    assert client.get(f"/tasks/{own_task}", headers=auth(jwt_of(org_tree["viewer"]))).status_code == 200
    r = client.get(f"/tasks/{root_task}", headers=auth(jwt_of(org_tree["viewer"])))
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied: you can only view your own tasks"

    assert client.get(f"/tasks/{child_task}", headers=auth(jwt_of(org_tree["owner"]))).status_code == 200
    assert client.get(f"/tasks/{child_task}", headers=auth(jwt_of(org_tree["child_admin"]))).status_code == 200
    assert client.get(f"/tasks/{root_task}", headers=auth(jwt_of(org_tree["child_admin"]))).status_code == 403

def test_missing_task_is_404_before_403(client, org_tree):
    missing = str(uuid.uuid4())
    viewer = auth(jwt_of(org_tree["viewer"]))
    assert client.get(f"/tasks/{missing}", headers=viewer).status_code == 404
    assert client.put(f"/tasks/{missing}", json={"title": "x"}, headers=viewer).status_code == 404
    assert client.delete(f"/tasks/{missing}", headers=viewer).status_code == 404

def test_owner_of_task_updates_partially(client, org_tree, db_session):
    viewer = org_tree["viewer"]
    task_id = create_task(client, viewer, "draft", description="keep me").json()["id"]

    r = client.put(f"/tasks/{task_id}", json={"status": "in_progress", "title": None}, headers=auth(jwt_of(viewer)))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "in_progress"
    assert body["title"] == "draft"
    assert body["description"] == "keep me"

    rows = audit_rows(db_session, task_id, AuditAction.update)
    assert len(rows) == 1
    assert "in_progress" in rows[0].details

def test_viewer_editing_others_task_is_denied_and_audited(client, org_tree, db_session):
    task_id = create_task(client, org_tree["admin"], "admin's").json()["id"]

    r = client.put(f"/tasks/{task_id}", json={"title": "hacked"}, headers=auth(jwt_of(org_tree["viewer"])))
    assert r.status_code == 403
    assert r.json()["detail"] == "You can only edit your own tasks"

    rows = audit_rows(db_session, task_id, AuditAction.access_denied)
    assert len(rows) == 1
    assert rows[0].success is False
    assert str(rows[0].user_id) == org_tree["viewer"]["user"]["id"]
    assert rows[0].details == "Attempted to update task without permission"
    assert rows[0].ip_address == "testclient"

    r = client.delete(f"/tasks/{task_id}", headers=auth(jwt_of(org_tree["viewer"])))
    assert r.status_code == 403
    assert r.json()["detail"] == "You can only delete your own tasks"
    assert len(audit_rows(db_session, task_id, AuditAction.access_denied)) == 2

def test_out_of_scope_denial_is_not_audited(client, org_tree, db_session):
    # child admin holds update-any/delete-any, but the root org is out of scope
    task_id = create_task(client, org_tree["owner"], "root only").json()["id"]
    child_admin = auth(jwt_of(org_tree["child_admin"]))

    r = client.put(f"/tasks/{task_id}", json={"title": "nope"}, headers=child_admin)
    assert r.status_code == 403
    assert r.json()["detail"] == "Task is outside your organization scope"

    r = client.delete(f"/tasks/{task_id}", headers=child_admin)
    assert r.status_code == 403

    assert audit_rows(db_session, task_id, AuditAction.access_denied) == []

def test_admins_act_on_any_task_in_tree(client, org_tree, db_session):
    viewer_task = create_task(client, org_tree["viewer"], "viewer's").json()["id"]
    child_task = create_task(client, org_tree["child_admin"], "child's").json()["id"]
    admin = auth(jwt_of(org_tree["admin"]))

    r = client.put(f"/tasks/{child_task}", json={"priority": 9}, headers=admin)
    assert r.status_code == 200
    assert r.json()["priority"] == 9

    r = client.delete(f"/tasks/{viewer_task}", headers=admin)
    assert r.status_code == 200
    assert r.json() == {"deleted": True}
    assert client.get(f"/tasks/{viewer_task}", headers=admin).status_code == 404

    rows = audit_rows(db_session, viewer_task, AuditAction.delete)
    assert len(rows) == 1
    assert rows[0].details == "Deleted task: viewer's"
