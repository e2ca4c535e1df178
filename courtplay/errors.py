"""Exception types raised by the formation core."""


class CourtplayError(Exception):
    """Base class for courtplay errors."""


class ValidationError(CourtplayError, ValueError):
    """An entity failed a rule check; nothing was changed."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__('; '.join(self.errors))


class ReferenceNotFound(CourtplayError, LookupError):
    """A player, position, scenario or sequence id no longer resolves."""

    def __init__(self, kind: str, ref_id: str | None):
        self.kind = kind
        self.ref_id = ref_id
        super().__init__(f'{kind} not found: {ref_id}')


class PersistenceFailure(CourtplayError):
    """The persistence collaborator rejected an operation; it did not commit."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        message = f'Persistence failed during {operation}'
        if cause is not None:
            message = f'{message}: {cause}'
        super().__init__(message)
