"""
Module: records_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    form the "Q" side of the CQRS-lite split, answering approval list queries
    without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/, and domain/ DTOs.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      commit() or flush().
    - DTO return convention: selectors return frozen domain objects, not ORM
      instances.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from records_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Base class for selectors; subclasses implement the queries."""

    def __init__(self, session: Session):
        self.session = session
