"""
Repository / store errors
"""

from foodcourt.domain.exceptions import FoodCourtError


class RepositoryError(FoodCourtError):
    """Base repository error"""


class StoreUnavailableError(RepositoryError):
    """
    Persistence or change-stream transport failed

    Callers retry with backoff; the core never retries on its own so that
    history entries are not duplicated.
    """

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        message = f"Order store unavailable during {operation}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class StaleWriteError(RepositoryError):
    """
    Conditional write rejected

    The record changed between the read the caller validated against and
    the write. The caller must re-read the current status and re-decide.
    """

    def __init__(
        self,
        order_id: str,
        expected_status: str,
        actual_status: str,
        expected_sequence: int | None = None,
        actual_sequence: int | None = None,
    ):
        self.order_id = order_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        self.expected_sequence = expected_sequence
        self.actual_sequence = actual_sequence
        if expected_status != actual_status:
            detail = f"expected status '{expected_status}', current status is '{actual_status}'"
        else:
            detail = (
                f"status is still '{actual_status}' but the record was rewritten "
                f"(write {expected_sequence} -> {actual_sequence})"
            )
        super().__init__(
            f"Order {order_id} was modified concurrently: {detail}. Reload and try again."
        )

    @property
    def current_status(self) -> str:
        return self.actual_status


class EntityNotFoundError(RepositoryError):
    """Record does not exist"""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class DuplicateEntityError(RepositoryError):
    """Record with the same identity already exists"""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} already exists")
