import json
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from tasktree.db import get_db
from tasktree.models.enums import TaskCategory, TaskStatus
from tasktree.models.task import Task
from tasktree.ratelimit import client_ip
from tasktree.rbac.deps import enforce, get_actor, get_audit, load_org_tree
from tasktree.rbac.orgtree import OrgTree
from tasktree.rbac.policy import Actor, Operation, TaskRef, decide
from tasktree.schemas.tasks import TaskCreateIn, TaskOut, TaskUpdateIn
from tasktree.services.audit import AuditRecorder

router = APIRouter(prefix="/tasks", tags=["tasks"])

# columns that may not be cleared with an explicit null
_NOT_NULLABLE = {"title", "description", "status", "category", "priority"}

def _ref(t: Task) -> TaskRef:
    return TaskRef(owner_id=t.owner_id, org_id=t.org_id, id=t.id)

def _out(t: Task) -> TaskOut:
    return TaskOut(
        id=t.id,
        org_id=t.org_id,
        owner_id=t.owner_id,
        title=t.title,
        description=t.description,
        status=t.status,
        category=t.category,
        priority=t.priority,
        due_date=t.due_date,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )

def _get_task(db: Session, task_id: uuid.UUID) -> Task:
    # existence is checked before permission (404 before 403)
    t = db.get(Task, task_id)
    if t is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return t

@router.post("", response_model=TaskOut)
def create_task(
    payload: TaskCreateIn,
    request: Request,
    actor: Actor = Depends(get_actor),
    tree: OrgTree = Depends(load_org_tree),
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
) -> TaskOut:
    org_id = payload.organization_id or actor.org_id
    decision = enforce(
        decide(Operation.task_create, actor, tree, TaskRef(owner_id=actor.user_id, org_id=org_id)),
        audit,
        request,
    )

    t = Task(
        org_id=org_id,
        owner_id=actor.user_id,
        title=payload.title,
        description=payload.description,
        status=payload.status,
        category=payload.category,
        priority=payload.priority,
        due_date=payload.due_date,
    )
    db.add(t)
    db.commit()
    db.refresh(t)

    audit.record(
        decision.success_signal(
            details=f"Created task: {t.title}",
            resource_id=str(t.id),
            ip_address=client_ip(request),
        )
    )
    return _out(t)

@router.get("", response_model=list[TaskOut])
def list_tasks(
    request: Request,
    status: TaskStatus | None = None,
    category: TaskCategory | None = None,
    search: str | None = None,
    actor: Actor = Depends(get_actor),
    tree: OrgTree = Depends(load_org_tree),
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
) -> list[TaskOut]:
    decision = enforce(decide(Operation.task_list, actor, tree), audit, request)
    scope = decision.scope

    q = select(Task)
    if scope.org_ids is not None:
        q = q.where(Task.org_id.in_(sorted(scope.org_ids, key=str)))
    else:
        q = q.where(Task.owner_id == scope.owner_id)

    if status is not None:
        q = q.where(Task.status == status)
    if category is not None:
        q = q.where(Task.category == category)
    if search:
        q = q.where(
            or_(
                Task.title.icontains(search, autoescape=True),
                Task.description.icontains(search, autoescape=True),
            )
        )

    q = q.order_by(Task.priority.desc(), Task.created_at.desc())
    rows = db.scalars(q).all()

    audit.record(
        decision.success_signal(
            details=f"Listed tasks ({len(rows)} results)",
            ip_address=client_ip(request),
        )
    )
    return [_out(r) for r in rows]

@router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: uuid.UUID,
    request: Request,
    actor: Actor = Depends(get_actor),
    tree: OrgTree = Depends(load_org_tree),
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = _get_task(db, task_id)
    decision = enforce(decide(Operation.task_read, actor, tree, _ref(t)), audit, request)

    out = _out(t)
    audit.record(decision.success_signal(ip_address=client_ip(request)))
    return out

@router.put("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: uuid.UUID,
    payload: TaskUpdateIn,
    request: Request,
    actor: Actor = Depends(get_actor),
    tree: OrgTree = Depends(load_org_tree),
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
) -> TaskOut:
    t = _get_task(db, task_id)
    decision = enforce(decide(Operation.task_update, actor, tree, _ref(t)), audit, request)

    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k not in _NOT_NULLABLE
    }
    for field, value in changes.items():
        setattr(t, field, value)

    db.add(t)
    db.commit()
    db.refresh(t)

    applied = payload.model_dump(mode="json", include=set(changes))
    audit.record(
        decision.success_signal(
            details=f"Updated task: {json.dumps(applied)}",
            ip_address=client_ip(request),
        )
    )
    return _out(t)

@router.delete("/{task_id}")
def delete_task(
    task_id: uuid.UUID,
    request: Request,
    actor: Actor = Depends(get_actor),
    tree: OrgTree = Depends(load_org_tree),
    audit: AuditRecorder = Depends(get_audit),
    db: Session = Depends(get_db),
) -> dict:
    t = _get_task(db, task_id)
    decision = enforce(decide(Operation.task_delete, actor, tree, _ref(t)), audit, request)

    title = t.title
    db.delete(t)
    db.commit()

    audit.record(
        decision.success_signal(
            details=f"Deleted task: {title}",
            ip_address=client_ip(request),
        )
    )
    return {"deleted": True}
