from datetime import date


class ShiftgridError(Exception):
    """Base class for every error raised by shiftgrid."""


class InvalidTimeError(ShiftgridError, ValueError):
    pass


class NotFoundError(ShiftgridError):
    def __init__(self, kind: str, ident: object) -> None:
        super().__init__(f"{kind.capitalize()} not found")
        self.kind = kind
        self.ident = ident


class ShiftConflictError(ShiftgridError):
    """
    A candidate shift overlaps an existing shift of the same employee.
    The message names the offending date so it can be shown as-is.
    """

    def __init__(self, target_date: date, conflicting_ids: list[int] | None = None) -> None:
        super().__init__(
            f"Schedule conflict on {target_date.strftime('%A %d/%m')}"
        )
        self.target_date = target_date
        self.conflicting_ids = list(conflicting_ids or [])


class FeatureUnavailableError(ShiftgridError):
    def __init__(self, feature: str, message: str) -> None:
        super().__init__(message)
        self.feature = feature


class ApiError(ShiftgridError):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
