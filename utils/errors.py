"""Error kinds raised by the store, backup, migration and user layers."""


class MathsMayhemError(Exception):
    """Base class; ``status_code`` is the HTTP status a route should answer with."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InputMissing(MathsMayhemError):
    status_code = 400


class Conflict(MathsMayhemError):
    status_code = 409


class Unauthorized(MathsMayhemError):
    status_code = 401


class NotFound(MathsMayhemError):
    status_code = 404


class UserNotFound(NotFound):
    pass


class BackupNotFound(NotFound):
    pass


class StorageFailure(MathsMayhemError):
    """Quota or serialization failure in a key-value store. Non-fatal for callers."""


class StorageQuotaExceeded(StorageFailure):
    pass


class RemoteUnavailable(MathsMayhemError):
    """Network or endpoint failure talking to the remote user-data service."""

    status_code = 503
