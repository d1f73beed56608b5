"""Project, membership and join-request lifecycle.

Every mutation re-checks who may perform it inside the statement that mutates
(``UPDATE ... WHERE creator_id = :caller AND status IN (...)``) and treats an
unaffected row as a failed precondition. Duplicate memberships and join
requests are stopped by the ``(project_id, user_id)`` unique constraints; the
resulting ``IntegrityError`` is turned into the matching domain error.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import and_, func, not_, or_, select
from sqlalchemy.exc import IntegrityError

from models import db
from models.join_request import JoinRequest
from models.membership import Membership
from models.project import Project
from models.status import (
    MembershipRole,
    MembershipStatus,
    ProjectStatus,
    RequestStatus,
    display_status,
    require_transition,
    sources_for,
)
from utils import clock
from utils.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError

NAME_MAX_LEN = 120
MESSAGE_MAX_LEN = 1000

ACTIONS = {
    "accept": RequestStatus.ACCEPTED,
    "reject": RequestStatus.REJECTED,
}


@dataclass
class ProjectView:
    project: Project
    status: str
    member_count: int
    left_at: Optional[datetime] = None


# ---------- validation helpers ----------

def _clean(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _string_set(values) -> list:
    """Strips, drops blanks and de-duplicates while keeping first-seen order."""
    out = []
    for value in values:
        if not isinstance(value, str):
            raise ValidationError("Tags and lookingFor must contain only strings")
        value = value.strip()
        if value and value not in out:
            out.append(value)
    return out


def _name_and_description(name, description):
    name = _clean(name)
    description = _clean(description)
    if not name or not description:
        raise ValidationError("Name and description are required")
    if len(name) > NAME_MAX_LEN:
        raise ValidationError(f"Project name must be at most {NAME_MAX_LEN} characters")
    return name, description


def _require_user(ctx):
    if ctx.user_id is None:
        # routes guard with login_required; services refuse anonymous callers too
        raise AuthenticationError("Authentication required")
    return ctx.user_id


def _get_project(project_id) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found")
    return project


def _owned_project_ids(user_id):
    return select(Project.id).where(
        Project.creator_id == user_id,
        Project.status == ProjectStatus.ACTIVE,
    )


def _cooldown_days() -> int:
    return int(current_app.config.get("JOIN_REJECTION_COOLDOWN_DAYS", 30))


def active_member_counts(project_ids) -> dict:
    if not project_ids:
        return {}
    rows = (
        db.session.query(Membership.project_id, func.count(Membership.id))
        .filter(
            Membership.project_id.in_(project_ids),
            Membership.status == MembershipStatus.ACTIVE,
        )
        .group_by(Membership.project_id)
        .all()
    )
    return {project_id: count for project_id, count in rows}


# ---------- projects ----------

def create_project(ctx, name, description, tags, looking_for) -> Project:
    user_id = _require_user(ctx)
    name, description = _name_and_description(name, description)
    if not isinstance(tags, list) or not isinstance(looking_for, list):
        raise ValidationError("Tags and lookingFor must be arrays")
    tags = _string_set(tags)
    looking_for = _string_set(looking_for)

    now = clock.utcnow()
    project = Project(
        name=name,
        description=description,
        status=ProjectStatus.ACTIVE,
        creator_id=user_id,
        tags=tags,
        looking_for=looking_for,
        # Recruiting as soon as the creator says who they are looking for
        recruitment_open=len(looking_for) > 0,
        created_at=now,
        updated_at=now,
    )
    db.session.add(project)
    db.session.flush()

    db.session.add(Membership(
        project_id=project.id,
        user_id=user_id,
        role=MembershipRole.CREATOR,
        status=MembershipStatus.ACTIVE,
        joined_at=now,
    ))
    db.session.commit()
    return project


def get_project(project_id) -> Project:
    return _get_project(project_id)


def update_project(ctx, project_id, name, description, tags=None, looking_for=None,
                   recruitment_open=None) -> Project:
    user_id = _require_user(ctx)
    name, description = _name_and_description(name, description)

    values = {
        Project.name: name,
        Project.description: description,
        Project.updated_at: clock.utcnow(),
    }
    if tags is not None:
        if not isinstance(tags, list):
            raise ValidationError("Tags and lookingFor must be arrays")
        values[Project.tags] = _string_set(tags)
    if looking_for is not None:
        if not isinstance(looking_for, list):
            raise ValidationError("Tags and lookingFor must be arrays")
        values[Project.looking_for] = _string_set(looking_for)
    if recruitment_open is not None:
        if not isinstance(recruitment_open, bool):
            raise ValidationError("recruitmentOpen must be a boolean")
        values[Project.recruitment_open] = recruitment_open

    updated = Project.query.filter(
        Project.id == project_id,
        Project.creator_id == user_id,
        Project.status == ProjectStatus.ACTIVE,
    ).update(values, synchronize_session=False)
    if not updated:
        db.session.rollback()
        raise NotFoundError("Project not found or unauthorized")

    db.session.commit()
    return db.session.get(Project, project_id)


def toggle_recruitment(ctx, project_id) -> bool:
    user_id = _require_user(ctx)
    updated = Project.query.filter(
        Project.id == project_id,
        Project.creator_id == user_id,
        Project.status == ProjectStatus.ACTIVE,
    ).update(
        {
            Project.recruitment_open: not_(Project.recruitment_open),
            Project.updated_at: clock.utcnow(),
        },
        synchronize_session=False,
    )
    if not updated:
        db.session.rollback()
        raise NotFoundError("Project not found or unauthorized")

    recruitment_open = (
        db.session.query(Project.recruitment_open).filter(Project.id == project_id).scalar()
    )
    db.session.commit()
    return bool(recruitment_open)


def delete_project(ctx, project_id) -> None:
    user_id = _require_user(ctx)
    updated = Project.query.filter(
        Project.id == project_id,
        Project.creator_id == user_id,
        Project.status.in_(sources_for(ProjectStatus.DELETED)),
    ).update(
        {Project.status: ProjectStatus.DELETED, Project.updated_at: clock.utcnow()},
        synchronize_session=False,
    )
    if not updated:
        db.session.rollback()
        raise NotFoundError("Project not found or unauthorized")

    # Requests are meaningless once the project is gone; memberships stay as history
    JoinRequest.query.filter_by(project_id=project_id).delete(synchronize_session=False)
    db.session.commit()


def list_user_projects(ctx) -> list:
    """Every project the caller created or ever belonged to, with their view of its status."""
    user_id = _require_user(ctx)
    rows = (
        db.session.query(Project, Membership)
        .outerjoin(
            Membership,
            and_(Membership.project_id == Project.id, Membership.user_id == user_id),
        )
        .filter(or_(Project.creator_id == user_id, Membership.id.isnot(None)))
        .all()
    )
    counts = active_member_counts([project.id for project, _ in rows])

    views = [
        ProjectView(
            project=project,
            status=display_status(project.status, membership.status if membership else None),
            member_count=counts.get(project.id, 0),
            left_at=membership.left_at if membership else None,
        )
        for project, membership in rows
    ]

    # Newest first, then live memberships in live projects ahead of everything else
    views.sort(key=lambda v: (v.project.created_at, v.project.id), reverse=True)
    views.sort(key=lambda v: 0 if v.status == ProjectStatus.ACTIVE.value else 1)
    return views


def list_discover(ctx) -> list:
    q = Project.query.filter(
        Project.status == ProjectStatus.ACTIVE,
        Project.recruitment_open.is_(True),
    )
    if ctx.user_id is not None:
        already_in = select(Membership.project_id).where(
            Membership.user_id == ctx.user_id,
            Membership.status == MembershipStatus.ACTIVE,
        )
        q = q.filter(Project.id.notin_(already_in))

    projects = q.order_by(Project.created_at.desc(), Project.id.desc()).all()
    counts = active_member_counts([p.id for p in projects])
    return [
        ProjectView(project=p, status=p.status.value, member_count=counts.get(p.id, 0))
        for p in projects
    ]


# ---------- join requests ----------

def _find_request(project_id, user_id):
    return JoinRequest.query.filter_by(project_id=project_id, user_id=user_id).first()


def _cooldown_days_remaining(join_request: JoinRequest, now: datetime) -> int:
    ends = join_request.created_at + timedelta(days=_cooldown_days())
    seconds = (ends - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)


def _pending_error():
    return ValidationError(
        "You already have a pending request for this project", code="REQUEST_PENDING"
    )


def _membership_error(membership: Membership):
    if membership.status == MembershipStatus.KICKED:
        return ValidationError(
            "You were removed from this project and cannot rejoin.", code="MEMBERSHIP_KICKED"
        )
    if membership.status == MembershipStatus.LEFT:
        return ValidationError(
            "You have already left this project. Please contact the project creator to rejoin.",
            code="MEMBERSHIP_LEFT",
        )
    return ValidationError("You are already a member of this project", code="ALREADY_MEMBER")


def request_join(ctx, project_id, message=None) -> JoinRequest:
    user_id = _require_user(ctx)
    project = _get_project(project_id)

    if project.status != ProjectStatus.ACTIVE:
        raise ValidationError("This project is no longer active", code="PROJECT_INACTIVE")
    if project.creator_id == user_id:
        raise ValidationError("You can't join your own project", code="OWN_PROJECT")

    membership = Membership.query.filter_by(project_id=project_id, user_id=user_id).first()
    if membership:
        raise _membership_error(membership)

    if message is not None and not isinstance(message, str):
        raise ValidationError("message must be a string")
    message = _clean(message) or None
    if message and len(message) > MESSAGE_MAX_LEN:
        raise ValidationError(f"message must be at most {MESSAGE_MAX_LEN} characters")

    now = clock.utcnow()
    existing = _find_request(project_id, user_id)
    if existing:
        if existing.status == RequestStatus.PENDING:
            raise _pending_error()
        if existing.status == RequestStatus.ACCEPTED:
            raise ValidationError("You are already a member of this project", code="ALREADY_MEMBER")

        days = _cooldown_days_remaining(existing, now)
        if days > 0:
            raise ValidationError(
                f"Your previous request was rejected. You can apply again in {days} days.",
                code="REQUEST_REJECTED_RECENTLY",
            )

        # Stale rejection: purge exactly that row in the same transaction as the new insert.
        # Zero rows means a concurrent reapplication already replaced it.
        purged = JoinRequest.query.filter(
            JoinRequest.id == existing.id,
            JoinRequest.status == RequestStatus.REJECTED,
            JoinRequest.created_at <= now - timedelta(days=_cooldown_days()),
        ).delete(synchronize_session=False)
        if purged != 1:
            db.session.rollback()
            raise _pending_error()
        db.session.expunge(existing)

    join_request = JoinRequest(
        project_id=project_id,
        user_id=user_id,
        status=RequestStatus.PENDING,
        message=message,
        created_at=now,
    )
    db.session.add(join_request)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise _pending_error()
    return join_request


def list_requests(ctx, project_id) -> list:
    user_id = _require_user(ctx)
    project = _get_project(project_id)
    if project.creator_id != user_id:
        raise AuthorizationError("Only project creator can view join requests")

    return (
        JoinRequest.query
        .filter_by(project_id=project_id, status=RequestStatus.PENDING)
        .order_by(JoinRequest.created_at.desc(), JoinRequest.id.desc())
        .all()
    )


def decide_request(ctx, project_id, request_id, action) -> JoinRequest:
    """Accepts or rejects a pending join request on behalf of the project creator."""
    user_id = _require_user(ctx)
    target = ACTIONS.get(action) if isinstance(action, str) else None
    if target is None:
        raise ValidationError('Invalid action. Use "accept" or "reject"')

    project = _get_project(project_id)
    if project.creator_id != user_id:
        raise AuthorizationError("Only project creator can manage join requests")

    join_request = db.session.get(JoinRequest, request_id)
    if not join_request:
        raise NotFoundError("Join request not found")
    if join_request.project_id != project.id:
        raise ValidationError("Join request does not belong to this project")

    already_processed = "Join request has already been processed"
    require_transition(join_request.status, target, already_processed)
    applicant_id = join_request.user_id

    # Ownership and the pending state are re-checked by the UPDATE itself
    updated = JoinRequest.query.filter(
        JoinRequest.id == request_id,
        JoinRequest.project_id == project_id,
        JoinRequest.status.in_(sources_for(target)),
        JoinRequest.project_id.in_(_owned_project_ids(user_id)),
    ).update({JoinRequest.status: target}, synchronize_session=False)
    if not updated:
        db.session.rollback()
        raise ValidationError(already_processed, code="INVALID_TRANSITION")

    if target == RequestStatus.ACCEPTED:
        db.session.add(Membership(
            project_id=project_id,
            user_id=applicant_id,
            role=MembershipRole.MEMBER,
            status=MembershipStatus.ACTIVE,
            joined_at=clock.utcnow(),
        ))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(
            "User already has a membership record for this project", code="MEMBERSHIP_EXISTS"
        )

    db.session.refresh(join_request)
    return join_request


# ---------- membership ----------

def leave_project(ctx, project_id) -> None:
    user_id = _require_user(ctx)
    project = _get_project(project_id)
    if project.creator_id == user_id:
        raise ValidationError(
            "Project creator cannot leave. Delete the project instead.",
            code="CREATOR_CANNOT_LEAVE",
        )

    updated = Membership.query.filter(
        Membership.project_id == project_id,
        Membership.user_id == user_id,
        Membership.role == MembershipRole.MEMBER,
        Membership.status.in_(sources_for(MembershipStatus.LEFT)),
    ).update(
        {Membership.status: MembershipStatus.LEFT, Membership.left_at: clock.utcnow()},
        synchronize_session=False,
    )
    if not updated:
        db.session.rollback()
        raise ValidationError("You are not a member of this project", code="NOT_A_MEMBER")

    # Clear request history for the pair
    JoinRequest.query.filter_by(project_id=project_id, user_id=user_id).delete(
        synchronize_session=False
    )
    db.session.commit()


def list_members(ctx, project_id) -> list:
    user_id = _require_user(ctx)
    project = _get_project(project_id)

    if project.creator_id != user_id:
        is_member = Membership.query.filter_by(
            project_id=project_id, user_id=user_id, status=MembershipStatus.ACTIVE
        ).first()
        if not is_member:
            raise AuthorizationError("You must be a member to view project members")

    return (
        Membership.query
        .filter_by(project_id=project_id, status=MembershipStatus.ACTIVE)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
        .all()
    )
