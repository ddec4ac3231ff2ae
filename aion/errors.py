from __future__ import annotations


class AionError(Exception):
    """Base class for calendar core failures."""


class InvalidEventError(AionError, ValueError):
    pass


class InvalidRangeError(InvalidEventError):
    pass


class InvalidTransitionError(AionError):
    pass


class PlanningServiceError(AionError):
    pass


class PlanningInFlightError(AionError):
    pass


class ReconciliationPartialFailure(AionError):
    def __init__(self, cause: BaseException) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause
