"""
Module: relief_kernel.selectors.base
Responsibility: Base class for read-only query selectors.

Selectors take the caller's session, never add, flush, delete or commit,
and return frozen DTOs rather than ORM instances.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """Holds the caller's session for read-only queries."""

    def __init__(self, session: Session):
        self.session = session
