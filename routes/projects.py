from flask import Blueprint, jsonify

from security.rate_limit import check_and_increment_api_rate
from services import membership
from utils.audit import log_event
from utils.request_body import json_object
from utils.auth_context import current_context, login_required
from utils.errors import RateLimitedError

projects_bp = Blueprint("projects", __name__, url_prefix="/projects")


@projects_bp.before_request
def _enforce_api_rate():
    # Every project endpoint, read or write, counts against the same window
    ctx = current_context()
    allowed, retry_after = check_and_increment_api_rate(ctx.ip)
    if not allowed:
        log_event("API_RATE_LIMIT", user_id=ctx.user_id, metadata={"retry_after": retry_after})
        raise RateLimitedError("Too many requests, please try again later", retry_after=retry_after)


def _iso(value):
    return value.isoformat() if value else None


def _project_json(project, status=None, member_count=None, left_at=None):
    out = {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "status": status or project.status.value,
        "project_status": project.status.value,
        "creator_id": project.creator_id,
        "creator_username": project.creator.username if project.creator else "Unknown",
        "tags": list(project.tags or []),
        "looking_for": list(project.looking_for or []),
        "recruitment_open": bool(project.recruitment_open),
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }
    if member_count is not None:
        out["members"] = member_count
    if left_at is not None:
        out["left_at"] = _iso(left_at)
    return out


def _view_json(view):
    return _project_json(view.project, view.status, view.member_count, view.left_at)


# ---------- projects ----------
@projects_bp.post("")
@login_required
def create_project():
    ctx = current_context()
    data = json_object()

    project = membership.create_project(
        ctx,
        data.get("name"),
        data.get("description"),
        data.get("tags"),
        data.get("lookingFor"),
    )

    log_event("PROJECT_CREATE", user_id=ctx.user_id, entity="project", entity_id=project.id)
    return jsonify(
        success=True,
        message="Project created successfully",
        project=_project_json(project, member_count=1),
    ), 201


@projects_bp.get("")
@login_required
def my_projects():
    views = membership.list_user_projects(current_context())
    return jsonify(success=True, projects=[_view_json(v) for v in views]), 200


@projects_bp.get("/discover")
def discover():
    # Public; a logged-in caller does not see projects they are already active in
    views = membership.list_discover(current_context())
    return jsonify(success=True, projects=[_view_json(v) for v in views]), 200


@projects_bp.get("/<int:project_id>")
def get_project(project_id: int):
    project = membership.get_project(project_id)
    counts = membership.active_member_counts([project.id])
    return jsonify(
        success=True,
        project=_project_json(project, member_count=counts.get(project.id, 0)),
    ), 200


@projects_bp.put("/<int:project_id>")
@login_required
def update_project(project_id: int):
    ctx = current_context()
    data = json_object()

    project = membership.update_project(
        ctx,
        project_id,
        data.get("name"),
        data.get("description"),
        tags=data.get("tags"),
        looking_for=data.get("lookingFor"),
        recruitment_open=data.get("recruitmentOpen"),
    )

    log_event("PROJECT_UPDATE", user_id=ctx.user_id, entity="project", entity_id=project_id)
    return jsonify(
        success=True,
        message="Project updated successfully",
        project=_project_json(project),
    ), 200


@projects_bp.patch("/<int:project_id>/recruitment")
@login_required
def toggle_recruitment(project_id: int):
    ctx = current_context()
    recruitment_open = membership.toggle_recruitment(ctx, project_id)

    log_event(
        "PROJECT_RECRUITMENT_TOGGLE",
        user_id=ctx.user_id,
        entity="project",
        entity_id=project_id,
        metadata={"recruitment_open": recruitment_open},
    )
    return jsonify(
        success=True,
        message="Recruitment status updated",
        recruitment_open=recruitment_open,
    ), 200


@projects_bp.delete("/<int:project_id>")
@login_required
def delete_project(project_id: int):
    ctx = current_context()
    membership.delete_project(ctx, project_id)

    log_event("PROJECT_DELETE", user_id=ctx.user_id, entity="project", entity_id=project_id)
    return jsonify(success=True, message="Project deleted successfully"), 200


# ---------- join requests ----------
@projects_bp.post("/<int:project_id>/join")
@login_required
def request_join(project_id: int):
    ctx = current_context()
    data = json_object()

    join_request = membership.request_join(ctx, project_id, data.get("message"))

    log_event("JOIN_REQUEST_CREATE", user_id=ctx.user_id, entity="join_request", entity_id=join_request.id,
              metadata={"project_id": project_id})
    return jsonify(
        success=True,
        message="Join request sent successfully",
        join_request={
            "id": join_request.id,
            "project_id": join_request.project_id,
            "user_id": join_request.user_id,
            "status": join_request.status.value,
            "message": join_request.message,
            "created_at": _iso(join_request.created_at),
        },
    ), 201


@projects_bp.get("/<int:project_id>/requests")
@login_required
def list_requests(project_id: int):
    rows = membership.list_requests(current_context(), project_id)
    return jsonify(success=True, requests=[
        {
            "id": r.id,
            "project_id": r.project_id,
            "user_id": r.user_id,
            "username": r.user.username,
            "email": r.user.email,
            "status": r.status.value,
            "message": r.message,
            "created_at": _iso(r.created_at),
        }
        for r in rows
    ]), 200


@projects_bp.patch("/<int:project_id>/requests/<int:request_id>")
@login_required
def decide_request(project_id: int, request_id: int):
    ctx = current_context()
    data = json_object()
    action = data.get("action")

    join_request = membership.decide_request(ctx, project_id, request_id, action)

    accepted = action == "accept"
    log_event(
        "JOIN_REQUEST_ACCEPT" if accepted else "JOIN_REQUEST_REJECT",
        user_id=ctx.user_id,
        entity="join_request",
        entity_id=request_id,
        metadata={"project_id": project_id, "applicant_id": join_request.user_id},
    )
    return jsonify(
        success=True,
        message="Join request accepted" if accepted else "Join request rejected",
        status=join_request.status.value,
    ), 200


# ---------- membership ----------
@projects_bp.get("/<int:project_id>/members")
@login_required
def list_members(project_id: int):
    ctx = current_context()
    rows = membership.list_members(ctx, project_id)
    return jsonify(
        success=True,
        members=[
            {
                "id": m.id,
                "user_id": m.user_id,
                "username": m.user.username,
                "email": m.user.email,
                "role": m.role.value,
                "membership_status": m.status.value,
                "joined_at": _iso(m.joined_at),
            }
            for m in rows
        ],
        currentUserId=ctx.user_id,
    ), 200


@projects_bp.delete("/<int:project_id>/leave")
@login_required
def leave_project(project_id: int):
    ctx = current_context()
    membership.leave_project(ctx, project_id)

    log_event("PROJECT_LEAVE", user_id=ctx.user_id, entity="project", entity_id=project_id)
    return jsonify(success=True, message="You have left the project"), 200
