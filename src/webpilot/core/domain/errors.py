"""
Domain Errors

Exception taxonomy for task execution:
- Fatal / non-retryable: raised immediately out of planning or navigation and
  terminate the task (FAILED, or CANCELLED for RequestCancelledError)
- Terminal: raised by the controller itself when a bound is exhausted
- Replay: raised while loading or replaying a persisted step history

Action-level failures are NOT exceptions; they are captured as
ActionResult.error by the ActionExecutor.
"""


class WebPilotError(Exception):
    """Base class for all webpilot errors."""


class ChatModelAuthError(WebPilotError):
    """LLM provider rejected the credentials."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ChatModelBadRequestError(WebPilotError):
    """LLM provider rejected the request as malformed."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class ChatModelForbiddenError(WebPilotError):
    """LLM provider refused the request (quota, region, policy)."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class RequestCancelledError(WebPilotError):
    """The user (or host) cancelled the running task."""


class URLNotAllowedError(WebPilotError):
    """Navigation target violates the configured URL policy."""


class ExtensionConflictError(WebPilotError):
    """Another extension or automation session interferes with the browser."""


class MaxStepsReachedError(WebPilotError):
    """Step counter reached the configured maximum."""


class MaxFailuresReachedError(WebPilotError):
    """Consecutive planning failures reached the configured maximum."""


class HistoryNotFoundError(WebPilotError):
    """No persisted step history exists for the requested task."""


class HistoryReplayError(WebPilotError):
    """A replayed step failed and failures are not being skipped."""


FATAL_ERRORS: tuple[type[BaseException], ...] = (
    ChatModelAuthError,
    ChatModelBadRequestError,
    ChatModelForbiddenError,
    URLNotAllowedError,
    RequestCancelledError,
    ExtensionConflictError,
)

LLM_FORBIDDEN_ERROR_MESSAGE = (
    "Access denied (403 Forbidden). Please check your API key permissions "
    "or account quota."
)


def is_fatal(error: BaseException) -> bool:
    """Return True if the error must abort the task without retry."""
    return isinstance(error, FATAL_ERRORS)
