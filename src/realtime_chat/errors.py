"""
Error taxonomy shared by the storage, session, realtime and HTTP layers.

Every error carries a stable 'code' string. The realtime hub turns a raised
'ChatError' into an 'error' event addressed to the requesting connection only;
the HTTP layer maps the same classes onto status codes. Nothing outside this
module needs to know which concrete backend raised an error.
"""


class ChatError(Exception):
    """Base class for all application errors."""

    code = "chat_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class AuthenticationError(ChatError):
    """Missing, unknown or expired credentials. No state was changed."""

    code = "unauthenticated"


class SessionNotFoundError(AuthenticationError):
    code = "session_not_found"


class SessionExpiredError(AuthenticationError):
    code = "session_expired"


class InvalidCredentialsError(AuthenticationError):
    code = "invalid_credentials"


class AuthorizationError(ChatError):
    """The caller is authenticated but does not own the resource."""

    code = "forbidden"


class ValidationError(ChatError):
    """A request is missing required fields. Raised before any storage access."""

    code = "invalid_request"


class InvalidEventError(ValidationError):
    code = "invalid_event"


class NotFoundError(ChatError):
    code = "not_found"


class MessageNotFoundError(NotFoundError):
    code = "message_not_found"


class UserNotFoundError(NotFoundError):
    code = "user_not_found"


class ConflictError(ChatError):
    code = "conflict"


class NameTakenError(ConflictError):
    code = "name_taken"


class StorageError(ChatError):
    """A backend failed. Operations are not retried."""

    code = "storage_error"
