"""Closed status vocabularies for projects, memberships and join requests.

Every status column is persisted from one of these enums, and every status
change goes through :func:`require_transition`, so a row can only move along
the edges listed in ``TRANSITIONS``.
"""
import enum

from utils.errors import ValidationError


class ProjectStatus(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"


class MembershipRole(str, enum.Enum):
    CREATOR = "creator"
    MEMBER = "member"


class MembershipStatus(str, enum.Enum):
    ACTIVE = "active"
    LEFT = "left"
    KICKED = "kicked"   # reserved: no exposed operation kicks yet


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


TRANSITIONS = {
    ProjectStatus: {
        ProjectStatus.ACTIVE: frozenset({ProjectStatus.DELETED}),
        ProjectStatus.DELETED: frozenset(),
    },
    MembershipStatus: {
        MembershipStatus.ACTIVE: frozenset({MembershipStatus.LEFT, MembershipStatus.KICKED}),
        MembershipStatus.LEFT: frozenset(),
        MembershipStatus.KICKED: frozenset(),
    },
    RequestStatus: {
        RequestStatus.PENDING: frozenset({RequestStatus.ACCEPTED, RequestStatus.REJECTED}),
        RequestStatus.ACCEPTED: frozenset(),
        RequestStatus.REJECTED: frozenset(),
    },
}


def can_transition(current, target) -> bool:
    if type(current) is not type(target):
        return False
    return target in TRANSITIONS[type(current)][current]


def sources_for(target) -> list:
    """Every status allowed to move to ``target``; feeds the WHERE of conditional updates."""
    return [
        source for source, targets in TRANSITIONS[type(target)].items()
        if target in targets
    ]


def require_transition(current, target, message: str = None):
    if not can_transition(current, target):
        raise ValidationError(
            message or f"Cannot change status from '{current.value}' to '{target.value}'",
            code="INVALID_TRANSITION",
        )
    return target


def display_status(project_status: ProjectStatus, membership_status=None) -> str:
    """Status of a project as one particular viewer should see it.

    A deleted project reads as deleted no matter what; otherwise a viewer who
    left or was kicked sees their own membership status; otherwise the
    project's status.
    """
    if project_status == ProjectStatus.DELETED:
        return ProjectStatus.DELETED.value
    if membership_status is not None and membership_status != MembershipStatus.ACTIVE:
        return MembershipStatus(membership_status).value
    return ProjectStatus(project_status).value


def enum_column_values(enum_cls):
    return [member.value for member in enum_cls]
