"""Store interface (port) for data persistence.

This is the port in hexagonal architecture that the infrastructure layer implements.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from builder_scout.domain.models import Store


class IStoreStorage(ABC):
    """Abstract interface for snapshot storage of the whole Store."""

    @abstractmethod
    def load(self) -> Store:
        """Load the persisted store.

        Must never raise for a missing or unreadable snapshot; an empty
        Store is returned instead.
        """
        pass

    @abstractmethod
    def save(self, store: Store, now: Optional[datetime] = None) -> None:
        """Persist the whole store, replacing the previous snapshot.

        Args:
            store: Store to persist
            now: Timestamp recorded as ``last_updated`` (defaults to current UTC time)
        """
        pass
