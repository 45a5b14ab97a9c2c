from __future__ import annotations

import os
import time

import requests
from rich import print

BASE = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
OWNER_CODE = os.getenv("OWNER_MASTER_CODE", "1001")

def post(path: str, *, jwt: str | None = None, json: dict | None = None) -> requests.Response:
    headers = {"content-type": "application/json"}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.post(f"{BASE}{path}", headers=headers, json=json, timeout=10)

def put(path: str, *, jwt: str, json: dict) -> requests.Response:
    return requests.put(f"{BASE}{path}", headers={"authorization": f"bearer {jwt}"}, json=json, timeout=10)

def get(path: str, *, jwt: str | None = None) -> requests.Response:
    headers = {}
    if jwt:
        headers["authorization"] = f"bearer {jwt}"
    return requests.get(f"{BASE}{path}", headers=headers, timeout=10)

def register(email: str, **fields: str | None) -> dict:
    r = post("/auth/register", json={"email": email, "first_name": "Demo", "last_name": "User", **fields})
    r.raise_for_status()
    return r.json()

def login(email: str) -> str:
    r = post("/auth/request-link", json={"email": email})
    r.raise_for_status()
    token = r.json()["token"]

    r2 = post("/auth/redeem", json={"token": token})
    r2.raise_for_status()
    return r2.json()["access_token"]

def wait_ready(timeout_s: float = 30.0) -> None:
    deadline = time.time() + timeout_s
    last_err: Exception | None = None

    while time.time() < deadline:
        try:
            r = get("/ready")
            if r.status_code == 200:
                return
        except requests.RequestException as e:
            last_err = e
        time.sleep(0.5)

    if last_err:
        raise RuntimeError(f"api not ready after {timeout_s}s (last error: {last_err})")
    raise RuntimeError(f"api not ready after {timeout_s}s")

def main() -> None:
    print("[bold]demo: owner signup -> child org -> admin + viewer -> tasks -> denials -> audit log[/bold]")

    wait_ready()
    print("[green]ready ok[/green]")

    stamp = int(time.time())

    owner = register(f"owner-{stamp}@example.com", invite_code=OWNER_CODE, organization_name=f"demo corp {stamp}")
    owner_jwt = owner["access_token"]
    root_id = owner["user"]["org_id"]
    print("owner registered, root org:", root_id)

    r = post("/organizations", jwt=owner_jwt, json={"name": f"demo engineering {stamp}", "parent_id": root_id})
    r.raise_for_status()
    child = r.json()
    print("created child org:", child["id"])

    admin_jwt = register(f"admin-{stamp}@example.com", invite_code=owner["org_invite_code"])["access_token"]
    print("admin joined root org")

    viewer_email = f"viewer-{stamp}@example.com"
    register(viewer_email, organization_id=child["id"])
    viewer_jwt = login(viewer_email)
    print("viewer joined child org and logged in via magic link")

    r = post("/tasks", jwt=viewer_jwt, json={"title": "viewer task", "priority": 3})
    r.raise_for_status()
    viewer_task = r.json()["id"]

    r = post("/tasks", jwt=admin_jwt, json={"title": "admin task", "organization_id": child["id"]})
    r.raise_for_status()
    admin_task = r.json()["id"]
    print("created tasks:", viewer_task, admin_task)

    r = put(f"/tasks/{admin_task}", jwt=viewer_jwt, json={"title": "not mine"})
    print("viewer edits admin task ->", r.status_code, r.json()["detail"])

    r = put(f"/tasks/{viewer_task}", jwt=admin_jwt, json={"status": "in_progress"})
    r.raise_for_status()
    print("admin edits viewer task ->", r.status_code)

    print("viewer sees", len(get("/tasks", jwt=viewer_jwt).json()), "task(s); admin sees", len(get("/tasks", jwt=admin_jwt).json()))

    r = get("/audit-log?limit=5", jwt=owner_jwt)
    r.raise_for_status()
    for entry in r.json()["data"]:
        print(f"  {entry['action']:<13} {entry['resource']:<6} success={entry['success']} {entry['details']}")
    print("[bold green]demo complete[/bold green]")

if __name__ == "__main__":
    main()
