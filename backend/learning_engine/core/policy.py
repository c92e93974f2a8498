"""
Adaptive Learning Engine - Capability Policy
Table-driven authorization checked at the entry of every operation
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from learning_engine.core.errors import PermissionDeniedError
from learning_engine.core.security import Actor, Role


class Operation(str, Enum):
    # Progression
    CHECK_ACCESS = "check_access"
    UPDATE_PROGRESS = "update_progress"
    BLOCK = "block"
    UNBLOCK = "unblock"
    RESET_PROGRESS = "reset_progress"
    READ_BLOCKS = "read_blocks"
    COURSE_OVERVIEW = "course_overview"
    # Knowledge
    READ_PROFILE = "read_profile"
    READ_GAPS = "read_gaps"
    ANALYZE_ATTEMPT = "analyze_attempt"
    UPDATE_PROFILE = "update_profile"
    # Assessments
    CREATE_INITIAL_ASSESSMENT = "create_initial_assessment"
    GENERATE_PERSONALIZED_ASSESSMENT = "generate_personalized_assessment"
    SUBMIT_ATTEMPT = "submit_attempt"
    MANUAL_GRADE = "manual_grade"
    AUTHOR_QUESTIONS = "author_questions"
    # Engagement
    RECORD_ENGAGEMENT = "record_engagement"
    READ_ENGAGEMENT = "read_engagement"
    # Recommendations
    GENERATE_RECOMMENDATIONS = "generate_recommendations"
    RECORD_FEEDBACK = "record_feedback"
    EXPLAIN_RECOMMENDATION = "explain_recommendation"
    # Roadmaps
    GENERATE_ROADMAP = "generate_roadmap"
    READ_ROADMAP = "read_roadmap"
    SET_ROADMAP_STATUS = "set_roadmap_status"
    ALTERNATIVE_PATHS = "alternative_paths"
    ADAPT_ROADMAP = "adapt_roadmap"


@dataclass(frozen=True)
class Capability:
    """
    Who may run an operation.

    self_roles: roles allowed when the actor owns the data
    any_roles: roles allowed regardless of ownership
    """
    self_roles: frozenset[Role]
    any_roles: frozenset[Role] = frozenset()


_STAFF = frozenset({Role.INSTRUCTOR, Role.ADMIN})
_STUDENT = frozenset({Role.STUDENT})

STAFF_ONLY = Capability(self_roles=frozenset(), any_roles=_STAFF)
SELF_OR_STAFF = Capability(self_roles=_STUDENT, any_roles=_STAFF)
SELF_ONLY = Capability(self_roles=_STUDENT)


CAPABILITIES: dict[Operation, Capability] = {
    Operation.CHECK_ACCESS: SELF_ONLY,
    Operation.UPDATE_PROGRESS: SELF_ONLY,
    Operation.BLOCK: STAFF_ONLY,
    Operation.UNBLOCK: STAFF_ONLY,
    Operation.RESET_PROGRESS: STAFF_ONLY,
    Operation.READ_BLOCKS: SELF_OR_STAFF,
    Operation.COURSE_OVERVIEW: SELF_ONLY,
    Operation.READ_PROFILE: SELF_OR_STAFF,
    Operation.READ_GAPS: SELF_OR_STAFF,
    Operation.ANALYZE_ATTEMPT: SELF_ONLY,
    Operation.UPDATE_PROFILE: SELF_ONLY,
    Operation.CREATE_INITIAL_ASSESSMENT: SELF_ONLY,
    Operation.GENERATE_PERSONALIZED_ASSESSMENT: SELF_ONLY,
    Operation.SUBMIT_ATTEMPT: SELF_ONLY,
    Operation.MANUAL_GRADE: STAFF_ONLY,
    Operation.AUTHOR_QUESTIONS: STAFF_ONLY,
    Operation.RECORD_ENGAGEMENT: SELF_ONLY,
    Operation.READ_ENGAGEMENT: SELF_ONLY,
    Operation.GENERATE_RECOMMENDATIONS: SELF_ONLY,
    Operation.RECORD_FEEDBACK: SELF_ONLY,
    Operation.EXPLAIN_RECOMMENDATION: SELF_ONLY,
    Operation.GENERATE_ROADMAP: SELF_ONLY,
    Operation.READ_ROADMAP: SELF_OR_STAFF,
    Operation.SET_ROADMAP_STATUS: SELF_ONLY,
    Operation.ALTERNATIVE_PATHS: SELF_OR_STAFF,
    Operation.ADAPT_ROADMAP: SELF_ONLY,
}


def is_allowed(actor: Actor, operation: Operation, owner_id: Optional[str] = None) -> bool:
    capability = CAPABILITIES[operation]
    if actor.role in capability.any_roles:
        return True
    # Operations without an owner (e.g. creating an assessment) count as self-owned
    owns = owner_id is None or owner_id == actor.user_id
    return owns and actor.role in capability.self_roles


def ensure_allowed(actor: Actor, operation: Operation, owner_id: Optional[str] = None) -> None:
    """
    Raise PermissionDeniedError unless the actor holds the capability.

    Args:
        actor: Authenticated caller
        operation: Operation being invoked
        owner_id: Student whose data the operation touches, if any
    """
    if not is_allowed(actor, operation, owner_id):
        raise PermissionDeniedError(
            f"{actor.role.value} may not {operation.value.replace('_', ' ')}"
            + (f" for student {owner_id}" if owner_id and owner_id != actor.user_id else "")
        )
