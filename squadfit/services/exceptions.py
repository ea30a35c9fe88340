"""
Domain exceptions raised by the progression engine and its admin collaborators.

Routes translate these into HTTP status codes; services never catch them.
"""


class ProgressionError(Exception):
    """Base class for all engine errors. Terminal for the current submission."""


# --- NotFound ---


class NotFoundError(ProgressionError, LookupError):
    """Raised when a referenced record does not exist."""


class MemberNotFoundError(NotFoundError):
    """Raised when a member has no profile yet."""


class ExerciseNotFoundError(NotFoundError):
    """Raised when an exercise reference is invalid."""


class ChallengeNotFoundError(NotFoundError):
    """Raised when a challenge reference does not exist."""


class SeasonNotFoundError(NotFoundError):
    """Raised when a season reference does not exist."""


class TeamNotFoundError(NotFoundError):
    """Raised when a team reference does not exist."""


class TeamMembershipNotFoundError(NotFoundError):
    """Raised when a member has no active team membership."""


# --- InactiveWindow ---


class InactiveWindowError(ProgressionError):
    """Raised when a season or challenge exists but is outside its time bounds."""


class ChallengeInactiveError(InactiveWindowError):
    """Raised when a challenge (or its season) is not currently active."""


# --- Everything else ---


class InvalidRangeError(ProgressionError, ValueError):
    """Raised when a window's end does not come after its start."""


class ConcurrencyConflictError(ProgressionError):
    """Raised when the atomic update hit a concurrent write. Retry the whole submission."""


class ConstraintViolationError(ProgressionError):
    """Raised when an administrative change is blocked by existing references."""


class TeamMembershipConflictError(ProgressionError):
    """Raised when a member who already belongs to a team tries to join another."""


class InvalidCursorError(ProgressionError, ValueError):
    """Raised when a pagination cursor cannot be decoded."""
