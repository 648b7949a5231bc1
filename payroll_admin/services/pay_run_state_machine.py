"""Pay run status transitions."""

from enum import Enum

from payroll_admin.core.errors import InvalidStatusTransition


class PayRunStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PROCESSED = "processed"


class PayRunStateMachine:
    """
    draft            -> draft, pending_approval
    pending_approval -> approved, draft
    approved         -> processed, pending_approval
    processed        -> (terminal)
    """

    VALID_TRANSITIONS: dict[str, frozenset[str]] = {
        PayRunStatus.DRAFT.value: frozenset({PayRunStatus.PENDING_APPROVAL.value, PayRunStatus.DRAFT.value}),
        PayRunStatus.PENDING_APPROVAL.value: frozenset({PayRunStatus.APPROVED.value, PayRunStatus.DRAFT.value}),
        PayRunStatus.APPROVED.value: frozenset({PayRunStatus.PROCESSED.value, PayRunStatus.PENDING_APPROVAL.value}),
        PayRunStatus.PROCESSED.value: frozenset(),
    }

    # Pay items under these runs are frozen.
    ITEMS_LOCKED = frozenset({PayRunStatus.PROCESSED.value})

    SOFT_DELETABLE = frozenset({PayRunStatus.DRAFT.value})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.VALID_TRANSITIONS.get(from_status, frozenset())

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        if not cls.can_transition(from_status, to_status):
            raise InvalidStatusTransition(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        return sorted(cls.VALID_TRANSITIONS.get(current_status, frozenset()))

    @classmethod
    def items_locked(cls, status: str) -> bool:
        return status in cls.ITEMS_LOCKED

    @classmethod
    def can_soft_delete(cls, status: str) -> bool:
        return status in cls.SOFT_DELETABLE

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)
