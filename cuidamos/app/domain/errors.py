"""Domain errors surfaced by the service layer."""


class CuidamosError(Exception):
    """Base class for failures the HTTP layer knows how to map."""

    status_code = 400

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail


class Forbidden(CuidamosError):
    status_code = 403


class NotFound(CuidamosError):
    status_code = 404


class Conflict(CuidamosError):
    status_code = 409


class StorageFailure(CuidamosError):
    """The backing store rejected or timed out a read or write."""

    status_code = 503
