"""Base repository pattern over the persistence interface.

Typed repositories convert rows to domain records and back; the store
beneath them only deals in plain dict rows.
"""
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, TypeVar

from guardian.shared.errors import DependencyFailure

if TYPE_CHECKING:
    from .store import Filter, Store

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RepositoryError(DependencyFailure):
    """Base exception for persistence failures."""
    pass


class NotFoundError(RepositoryError):
    """Entity not found in the store."""
    pass


class DuplicateError(RepositoryError):
    """Duplicate entity already exists."""
    pass


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository with common operations.
    
    Subclasses implement row conversion while inheriting lookup,
    insert and filtered update/query helpers.
    """
    
    def __init__(self, store: "Store", table_name: str):
        """Initialize repository.
        
        Args:
            store: Persistence interface
            table_name: Name of the table/collection
        """
        self.store = store
        self.table_name = table_name
        
        logger.debug(
            "REPOSITORY_INITIALIZED",
            extra={"table_name": table_name}
        )
    
    @abstractmethod
    def _row_to_entity(self, row: Dict[str, Any]) -> T:
        """Convert a stored row to an entity."""
        pass
    
    @abstractmethod
    def _entity_to_params(self, entity: T) -> Dict[str, Any]:
        """Convert an entity to column values."""
        pass
    
    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Find entity by ID.
        
        Returns:
            Entity if found, None otherwise
        """
        row = self.store.get(self.table_name, entity_id)
        return self._row_to_entity(row) if row is not None else None
    
    def get_by_id(self, entity_id: str) -> T:
        """Find entity by ID or raise NotFoundError."""
        entity = self.find_by_id(entity_id)
        if entity is None:
            raise NotFoundError(f"{self.table_name} {entity_id} not found")
        return entity
    
    def add(self, entity: T) -> T:
        """Insert a new entity and return it as stored."""
        row = self.store.insert(self.table_name, self._entity_to_params(entity))
        return self._row_to_entity(row)
    
    def _find(
        self,
        filters: Sequence["Filter"],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[T]:
        rows = self.store.query(
            self.table_name,
            filters,
            order_by=order_by,
            descending=descending,
            limit=limit,
        )
        return [self._row_to_entity(row) for row in rows]
    
    def _find_one(self, filters: Sequence["Filter"], **kwargs) -> Optional[T]:
        found = self._find(filters, limit=1, **kwargs)
        return found[0] if found else None
    
    def _update(self, filters: Sequence["Filter"], changes: Dict[str, Any]) -> List[T]:
        rows = self.store.update(self.table_name, filters, changes)
        return [self._row_to_entity(row) for row in rows]
