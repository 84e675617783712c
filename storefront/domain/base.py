"""Base classes for domain layer.

Provides foundational abstractions for entities, value objects
and aggregates.
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# ============================================================================
# Value Object Base
# ============================================================================


@dataclass(frozen=True)
class ValueObject(ABC):
    """Base class for value objects.

    Value objects are immutable and compared by their attributes,
    not by identity.
    """

    pass


# ============================================================================
# Entity Base
# ============================================================================


@dataclass
class Entity(ABC):
    """Base class for entities.

    Entities have identity that persists across state changes.
    Two entities are equal if they have the same identity,
    regardless of their other attributes.

    Attributes:
        id: Unique identifier for this entity.
    """

    id: str

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(kw_only=True, eq=False)
class AggregateRoot(Entity):
    """Base class for aggregate roots.

    Attributes:
        created_at: Timestamp when the aggregate was created.
        updated_at: Timestamp of last modification.
    """

    created_at: datetime = field(default_factory=utcnow, compare=False)
    updated_at: datetime = field(default_factory=utcnow, compare=False)

    def touch(self) -> None:
        """Update the modification timestamp."""
        self.updated_at = utcnow()
