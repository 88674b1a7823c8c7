"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    code = "AppError"

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ValidationError(AppError):
    """Raised when user input fails validation."""

    code = "ValidationError"

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class DuplicateResourceError(AppError):
    """Raised when trying to create a resource that already exists."""

    code = "DuplicateResource"

    def __init__(self, message="Resource already exists."):
        """Initialize the error."""
        super().__init__(message, 409)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    code = "NotFound"

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class InsufficientPromptsError(AppError):
    """Raised when a bracket is requested with fewer than two prompts."""

    code = "InsufficientPrompts"

    def __init__(self, message="At least 2 prompts are needed to start a game."):
        """Initialize the error."""
        super().__init__(message, 400)


class NotInWaitingStateError(AppError):
    """Raised when registration or voting happens in the wrong phase."""

    code = "NotInWaitingState"

    def __init__(self, message="The game is not in the right phase for that."):
        """Initialize the error."""
        super().__init__(message, 409)


class GameOverError(AppError):
    """Raised when the moderator tries to advance a finished game."""

    code = "GameOver"

    def __init__(self, message="Game is over. Please reset to start a new game."):
        """Initialize the error."""
        super().__init__(message, 409)


class DuplicateVoteError(AppError):
    """Raised when a participant votes twice in the same matchup."""

    code = "DuplicateVote"

    def __init__(self, message="You have already voted in this matchup."):
        """Initialize the error."""
        super().__init__(message, 409)


class VotingClosedError(AppError):
    """Raised when a vote arrives after the voting window closed."""

    code = "VotingClosed"

    def __init__(self, message="Time's up! Voting for this matchup has ended."):
        """Initialize the error."""
        super().__init__(message, 409)


class InvalidCodeError(AppError):
    """Raised when a ballot code does not belong to the active matchup."""

    code = "InvalidCode"

    def __init__(self, message="Invalid prompt code."):
        """Initialize the error."""
        super().__init__(message, 400)


class UnknownParticipantError(NotFoundError):
    """Raised when an alias or identity key is not registered."""

    code = "UnknownParticipant"

    def __init__(self, message="No participant found with that alias."):
        """Initialize the error."""
        super().__init__(message)


class IdentityMismatchError(AppError):
    """Raised when identity confirmation details do not match."""

    code = "IdentityMismatch"

    def __init__(self, message="Those details do not match our records."):
        """Initialize the error."""
        super().__init__(message, 403)


class PersistenceError(AppError):
    """Raised when a snapshot or audit write fails."""

    code = "PersistenceFailure"

    def __init__(self, message="Could not save game data."):
        """Initialize the error."""
        super().__init__(message, 503)


class InconsistentBracketError(AppError):
    """Raised when the bracket violates one of its own invariants."""

    code = "InconsistentBracket"

    def __init__(
        self,
        message="Could not prepare the next matchup. The game may be stuck; "
        "check the logs and try launching again.",
    ):
        """Initialize the error."""
        super().__init__(message, 500)
