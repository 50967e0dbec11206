"""State machine validation for AI deployment status transitions.

Keeps deployment status changes meaningful:
- New deployments start pending or active
- Only active deployments can be switched off
- Failed deployments must be retried through pending
"""
import logging

from .models import DeploymentStatus

logger = logging.getLogger("agency-core.state_machine")


class StateTransitionError(ValueError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: DeploymentStatus,
        requested_status: DeploymentStatus,
        allowed_transitions: list[DeploymentStatus]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# Maps current status -> list of allowed next statuses
TRANSITION_MATRIX: dict[DeploymentStatus, list[DeploymentStatus]] = {
    DeploymentStatus.PENDING: [
        DeploymentStatus.PENDING,    # No-op (allowed)
        DeploymentStatus.ACTIVE,     # Forward: went live
        DeploymentStatus.FAILED,     # Rollout failed
    ],
    DeploymentStatus.ACTIVE: [
        DeploymentStatus.ACTIVE,     # No-op (allowed)
        DeploymentStatus.INACTIVE,   # Switched off
        DeploymentStatus.FAILED,     # Broke in service
    ],
    DeploymentStatus.INACTIVE: [
        DeploymentStatus.INACTIVE,   # No-op (allowed)
        DeploymentStatus.ACTIVE,     # Switched back on
    ],
    DeploymentStatus.FAILED: [
        DeploymentStatus.FAILED,     # No-op (allowed)
        DeploymentStatus.PENDING,    # Retry
    ],
}


def is_transition_valid(
    current_status: DeploymentStatus,
    new_status: DeploymentStatus
) -> bool:
    """
    Check if a status transition is valid.

    Args:
        current_status: Current deployment status
        new_status: Requested new deployment status

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = TRANSITION_MATRIX.get(current_status, [])
    return new_status in allowed_transitions


def validate_transition(
    current_status: DeploymentStatus,
    new_status: DeploymentStatus
) -> None:
    """
    Validate a status transition and raise exception if invalid.

    Raises:
        StateTransitionError: If the transition is not allowed
    """
    if current_status == new_status:
        logger.debug(f"No-op transition: {current_status.value} -> {new_status.value}")
        return

    if not is_transition_valid(current_status, new_status):
        allowed_transitions = TRANSITION_MATRIX.get(current_status, [])
        allowed_names = [s.value for s in allowed_transitions if s != current_status]

        error_msg = (
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"From {current_status.value}, you can only transition to: {', '.join(allowed_names)}."
        )

        if current_status == DeploymentStatus.FAILED:
            error_msg += " Failed deployments must be retried through 'Pending'."
        elif current_status == DeploymentStatus.PENDING and new_status == DeploymentStatus.INACTIVE:
            error_msg += " A deployment that never went live cannot be deactivated."

        logger.warning(f"Blocked transition: {error_msg}")
        raise StateTransitionError(
            message=error_msg,
            current_status=current_status,
            requested_status=new_status,
            allowed_transitions=allowed_transitions
        )

    logger.debug(f"Valid transition: {current_status.value} -> {new_status.value}")


def get_allowed_transitions(current_status: DeploymentStatus) -> list[DeploymentStatus]:
    """Get list of allowed transitions from current status (excluding no-op)."""
    all_transitions = TRANSITION_MATRIX.get(current_status, [])
    return [s for s in all_transitions if s != current_status]
