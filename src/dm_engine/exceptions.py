"""Custom exceptions for DM Engine."""


class DMEngineError(Exception):
    """Base exception for all DM Engine errors."""


class InvalidArgumentError(DMEngineError):
    """Exception raised when an argument is rejected before any I/O."""


class ThreadNotFoundError(DMEngineError):
    """Exception raised when a thread looked up by id does not exist."""

    def __init__(self, thread_id: int) -> None:
        self.thread_id = thread_id
        super().__init__(f"Thread {thread_id} not found")


class StoreError(DMEngineError):
    """Exception raised when the underlying database operation fails.

    Any transaction that was open has already been rolled back when this is
    raised.
    """


class ConfigurationError(DMEngineError):
    """Exception raised for configuration related errors."""


class NotParticipantError(DMEngineError):
    """Exception raised when a user acts on a thread they are not part of."""

    def __init__(self, thread_id: int, user_id: int) -> None:
        self.thread_id = thread_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a participant of thread {thread_id}")


class MessagingBlockedError(DMEngineError):
    """Exception raised when a message may not be sent between two users."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Messaging not allowed: {reason}")
