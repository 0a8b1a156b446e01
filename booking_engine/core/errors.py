"""Error taxonomy for the scheduling engine.

All subclasses of ``SchedulingError`` are recoverable conditions meant for the
caller. ``InfrastructureError`` marks a failed store and is safe to retry.
"""


class SchedulingError(Exception):
    def __init__(self, message: str, *, field: str | None = None, rule: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.rule = rule

    def to_detail(self) -> dict:
        detail = {'message': self.message}
        if self.field:
            detail['field'] = self.field
        if self.rule:
            detail['rule'] = self.rule
        return detail


class ValidationError(SchedulingError):
    """Malformed or missing input, out-of-range duration, non-future time."""


class NotFoundError(SchedulingError):
    def __init__(self, resource: str, message: str | None = None) -> None:
        super().__init__(message or f'{resource} not found.', rule='not_found')
        self.resource = resource


class AuthorizationError(SchedulingError):
    def __init__(self, message: str = 'You do not have permission to perform this action.') -> None:
        super().__init__(message, rule='forbidden')


class ConflictError(SchedulingError):
    def __init__(self, message: str = 'This time slot is already booked. Please choose another time.') -> None:
        super().__init__(message, rule='slot_taken')


class IneligibleTransitionError(SchedulingError):
    """Transition from a terminal status, or a cancellation past the cutoff."""


class InfrastructureError(Exception):
    def __init__(self, message: str = 'Database unavailable. Verify DATABASE_URL and database credentials.') -> None:
        super().__init__(message)
        self.message = message
