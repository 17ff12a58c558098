"""Payment status transitions enforced by the lifecycle service."""

from merchantpay.common.errors import InvalidTransitionError

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
    # Reserved for a gateway failure path; nothing produces it yet.
    "failed": set(),
}

INITIAL_STATUS = "pending"


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(current, new)
