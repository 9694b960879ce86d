"""Error taxonomy shared by the API, the services and the client library.

Every failure surfaced to a caller is one of these types. The API renders
them through the handler registered in `pawwalk.main`; the client raises them
directly.
"""


class WalkAppError(Exception):
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.__class__.__name__
        super().__init__(self.reason)


class ValidationError(WalkAppError):
    status_code = 422
    code = "VALIDATION_ERROR"


class Unauthorized(WalkAppError):
    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(WalkAppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFound(WalkAppError):
    status_code = 404
    code = "NOT_FOUND"


class NotParticipant(NotFound):
    code = "NOT_PARTICIPANT"


class InvalidState(WalkAppError):
    status_code = 409
    code = "INVALID_STATE"


class Full(WalkAppError):
    status_code = 409
    code = "FULL"


class ServerError(WalkAppError):
    status_code = 500
    code = "SERVER_ERROR"


# Client-side tracking failures


class PermissionDenied(WalkAppError):
    status_code = 403
    code = "PERMISSION_DENIED"


class LocationUnavailable(WalkAppError):
    status_code = 409
    code = "LOCATION_UNAVAILABLE"


class SyncDeferred(WalkAppError):
    """Walk kept in local accounting; the server copy still has to be written.

    `cause` is the typed error the backend call failed with and `pending_id`
    identifies the local entry to retry.
    """

    status_code = 503
    code = "SYNC_DEFERRED"

    def __init__(self, pending_id: str, cause: WalkAppError):
        self.pending_id = pending_id
        self.cause = cause
        super().__init__(
            f"Walk saved locally and will sync later ({cause.code}: {cause.reason})"
        )
