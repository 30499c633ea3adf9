"""
BaseService -- common constructor for kernel services.

Services receive a Session from the caller and persist with
``session.flush()``; they never commit or roll back the caller's
transaction. Where an operation must be all-or-nothing inside a larger
transaction, the service opens a savepoint (``session.begin_nested()``)
and rolls back only that savepoint on failure.
"""

from abc import ABC

from sqlalchemy.orm import Session

from relief_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """Holds the caller's session and the injected clock."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
