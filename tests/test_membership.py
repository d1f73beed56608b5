from datetime import timedelta

import pytest

from models import db
from models.join_request import JoinRequest
from models.membership import Membership
from models.status import MembershipRole, MembershipStatus, ProjectStatus, RequestStatus
from models.user import User
from services import membership
from utils import clock
from utils.auth_context import RequestContext
from utils.errors import AuthenticationError, NotFoundError, ValidationError


def _user(name):
    user = User(username=name, username_lower=name, email=f"{name}@example.com", password_hash="x")
    db.session.add(user)
    db.session.commit()
    return user


def _ctx(user=None):
    return RequestContext(ip="127.0.0.1", user_agent="pytest", user=user)


@pytest.fixture()
def people(app):
    with app.app_context():
        creator = _user("carol")
        applicant = _user("dave")
        project = membership.create_project(_ctx(creator), "Robot Arm", "Build it", [], ["firmware"])
        yield _ctx(creator), _ctx(applicant), project.id


def test_anonymous_callers_are_refused(people):
    _, _, project_id = people
    with pytest.raises(AuthenticationError):
        membership.request_join(_ctx(), project_id)


def test_concurrent_join_is_stopped_by_unique_constraint(people, monkeypatch):
    _, applicant, project_id = people
    membership.request_join(applicant, project_id)

    # Simulate a second request that raced past the duplicate check
    monkeypatch.setattr(membership, "_find_request", lambda project_id, user_id: None)
    with pytest.raises(ValidationError) as exc:
        membership.request_join(applicant, project_id)
    assert exc.value.code == "REQUEST_PENDING"

    assert JoinRequest.query.filter_by(project_id=project_id).count() == 1


def test_stale_rejection_purged_once(people):
    creator, applicant, project_id = people
    first = membership.request_join(applicant, project_id)
    membership.decide_request(creator, project_id, first.id, "reject")

    JoinRequest.query.filter_by(id=first.id).update(
        {JoinRequest.created_at: clock.utcnow() - timedelta(days=31)}, synchronize_session=False
    )
    db.session.commit()

    second = membership.request_join(applicant, project_id, "again")
    assert second.status == RequestStatus.PENDING

    rows = JoinRequest.query.filter_by(project_id=project_id).all()
    assert [(r.status, r.message) for r in rows] == [(RequestStatus.PENDING, "again")]


def test_reapplication_loses_race_to_another_purge(people, monkeypatch):
    creator, applicant, project_id = people
    first = membership.request_join(applicant, project_id)
    membership.decide_request(creator, project_id, first.id, "reject")
    JoinRequest.query.filter_by(id=first.id).update(
        {JoinRequest.created_at: clock.utcnow() - timedelta(days=31)}, synchronize_session=False
    )
    db.session.commit()

    stale = membership._find_request(project_id, applicant.user_id)
    db.session.expunge(stale)
    # Another reapplication already replaced the stale row
    JoinRequest.query.filter_by(id=first.id).delete(synchronize_session=False)
    db.session.add(JoinRequest(project_id=project_id, user_id=applicant.user_id))
    db.session.commit()

    monkeypatch.setattr(membership, "_find_request", lambda project_id, user_id: stale)
    with pytest.raises(ValidationError) as exc:
        membership.request_join(applicant, project_id)
    assert exc.value.code == "REQUEST_PENDING"
    assert JoinRequest.query.filter_by(project_id=project_id).count() == 1


def test_accept_conflicts_with_existing_membership(people):
    creator, applicant, project_id = people
    join_request = membership.request_join(applicant, project_id)

    # A membership row appeared for the applicant behind the request's back
    db.session.add(Membership(
        project_id=project_id,
        user_id=applicant.user_id,
        role=MembershipRole.MEMBER,
        status=MembershipStatus.LEFT,
    ))
    db.session.commit()

    with pytest.raises(ValidationError) as exc:
        membership.decide_request(creator, project_id, join_request.id, "accept")
    assert exc.value.code == "MEMBERSHIP_EXISTS"
    assert db.session.get(JoinRequest, join_request.id).status == RequestStatus.PENDING


def test_deleted_project_cannot_be_changed(people):
    creator, _, project_id = people
    membership.delete_project(creator, project_id)

    assert membership.get_project(project_id).status == ProjectStatus.DELETED
    with pytest.raises(NotFoundError):
        membership.update_project(creator, project_id, "New", "Name")
    with pytest.raises(NotFoundError):
        membership.toggle_recruitment(creator, project_id)


def test_user_projects_list_active_first(people):
    creator, applicant, project_id = people
    older = project_id
    newer = membership.create_project(applicant, "Own idea", "Solo", [], []).id
    join_request = membership.request_join(applicant, older)
    membership.decide_request(creator, older, join_request.id, "accept")
    membership.delete_project(creator, older)
    third = membership.create_project(creator, "Third", "More", [], ["design"]).id
    join_request = membership.request_join(applicant, third)
    membership.decide_request(creator, third, join_request.id, "accept")

    views = membership.list_user_projects(applicant)
    assert [(v.project.id, v.status) for v in views] == [
        (third, "active"),
        (newer, "active"),
        (older, "deleted"),
    ]
    assert [v.member_count for v in views] == [2, 1, 2]


def test_message_length_is_bounded(people):
    _, applicant, project_id = people
    with pytest.raises(ValidationError):
        membership.request_join(applicant, project_id, "x" * 1001)
