import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from tasktree.auth.tokens import new_invite_code
from tasktree.db import SessionLocal, create_all
from tasktree.models.enums import Role, TaskCategory
from tasktree.models.org import Org
from tasktree.models.task import Task
from tasktree.models.user import User

@dataclass
class SeedResult:
    owner_email: str
    admin_email: str
    viewer_email: str
    root_org_id: uuid.UUID
    root_invite_code: str
    child_orgs: dict[str, uuid.UUID]
    task_id: uuid.UUID

def get_or_create_org(db: Session, name: str, parent_id: uuid.UUID | None = None) -> Org:
    o = db.scalar(select(Org).where(Org.name == name))
    if o is None:
        o = Org(name=name, parent_id=parent_id, invite_code=new_invite_code())
        db.add(o)
        db.flush()
    return o

def get_or_create_user(db: Session, email: str, first_name: str, role: Role, org_id: uuid.UUID) -> User:
    email = email.lower().strip()
    u = db.scalar(select(User).where(User.email == email))
    if u is None:
        u = User(email=email, first_name=first_name, last_name="Seed", role=role, org_id=org_id)
        db.add(u)
        db.flush()
    elif u.role != role or u.org_id != org_id:
        # keep it stable if you re-run seed
        u.role = role
        u.org_id = org_id
        db.add(u)
        db.flush()
    return u

def get_or_create_task(db: Session, org_id: uuid.UUID, owner_id: uuid.UUID, title: str, **extra) -> Task:
    t = db.scalar(select(Task).where(Task.org_id == org_id, Task.owner_id == owner_id, Task.title == title))
    if t is None:
        t = Task(org_id=org_id, owner_id=owner_id, title=title, **extra)
        db.add(t)
        db.flush()
    return t

def seed() -> SeedResult:
    create_all()
    db = SessionLocal()
    try:
        root = get_or_create_org(db, "Acme Corp")
        children = {name: get_or_create_org(db, name, parent_id=root.id) for name in ("Engineering", "Marketing")}

        owner = get_or_create_user(db, "owner@example.com", "Olive", Role.owner, root.id)
        admin = get_or_create_user(db, "admin@example.com", "Adam", Role.admin, root.id)
        viewer = get_or_create_user(db, "viewer@example.com", "Vera", Role.viewer, children["Engineering"].id)

        task = get_or_create_task(
            db,
            children["Engineering"].id,
            viewer.id,
            "Write onboarding notes",
            description="seeded task",
            category=TaskCategory.work,
            priority=2,
        )

        db.commit()

        return SeedResult(
            owner_email=owner.email,
            admin_email=admin.email,
            viewer_email=viewer.email,
            root_org_id=root.id,
            root_invite_code=root.invite_code or "",
            child_orgs={name: o.id for name, o in children.items()},
            task_id=task.id,
        )
    finally:
        db.close()

if __name__ == "__main__":
    r = seed()
    print("seed complete")
    print(f"root_org_id={r.root_org_id} invite_code={r.root_invite_code}")
    for name, org_id in r.child_orgs.items():
        print(f"  child {name}: {org_id}")
    print(f"task_id={r.task_id}")
    print("users:")
    print(f"  owner:  {r.owner_email}")
    print(f"  admin:  {r.admin_email}")
    print(f"  viewer: {r.viewer_email}")
