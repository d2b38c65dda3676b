class SyncError(Exception):
    """Base class for errors the gateway reports back to a device."""

    code = "error"
    retryable = False
    default_message = "Sync failed."
    http_status = 500

    def __init__(self, message=None, retryable=None):
        self.message = message or self.default_message
        if retryable is not None:
            self.retryable = retryable
        super().__init__(self.message)


class NotFound(SyncError):
    """Job or organization lookup miss.

    Cross-tenant misses raise this too, always with the same generic message,
    so a caller cannot tell whether a record exists in another organization.
    """

    code = "not_found"
    default_message = "Not found."
    http_status = 404

    def __init__(self, message=None):
        super().__init__(self.default_message)


class SyncConflict(SyncError):
    """Lock contention or a transition the stored state forbids."""

    code = "conflict"
    retryable = True
    default_message = "The record is busy, try again."
    http_status = 409


class Forbidden(SyncError):
    code = "forbidden"
    default_message = "Not allowed for this role."
    http_status = 403
