"""
Base Repository - common data access for all repositories
Implements the Repository Pattern over a Flask-SQLAlchemy session
"""

from typing import TypeVar, Generic, List, Optional, Dict, Any, Iterable, Type
from sqlalchemy.orm import Session, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc, asc
from enum import Enum
import logging

logger = logging.getLogger(__name__)

# Type variable for model classes
T = TypeVar('T')


class SortOrder(Enum):
    """Sort order options"""
    ASC = "asc"
    DESC = "desc"


class BaseRepository(Generic[T]):
    """
    Base repository with common CRUD operations.

    Repositories never commit on their own; the caller owns the transaction
    (see UnitOfWork). Errors are logged and re-raised so a failed write aborts
    the surrounding transaction instead of leaving it half applied.
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize repository with database session and model class.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    # CREATE Operations

    def create(self, **kwargs) -> T:
        """
        Create a new entity and flush it so its id is available.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            entity = self.model_class(**kwargs)
            self.session.add(entity)
            self.session.flush()  # Flush to get ID without committing
            logger.debug(f"Created {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model_class.__name__}: {e}")
            raise

    def insert_ignoring_conflict(self, values: Dict[str, Any], conflict_columns: Iterable[str]) -> bool:
        """
        INSERT ... ON CONFLICT DO NOTHING against a unique constraint.

        Args:
            values: Column values for the new row
            conflict_columns: Columns of the unique constraint to test

        Returns:
            True if a row was written, False if the constraint already held one
        """
        stmt = self._dialect_insert().values(**values).on_conflict_do_nothing(
            index_elements=list(conflict_columns)
        )
        try:
            result = self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Error inserting {self.model_class.__name__}: {e}")
            raise
        return result.rowcount == 1

    # READ Operations

    def get_by_id(self, entity_id: str) -> Optional[T]:
        """
        Get entity by ID.

        Returns:
            Entity instance or None if not found
        """
        return self.session.get(self.model_class, entity_id)

    def find_by(self, order_by: Optional[str] = None,
                order: SortOrder = SortOrder.ASC, **filters) -> List[T]:
        """
        Find entities by specific field values.

        Args:
            order_by: Optional field name to order by
            order: Sort order (ASC or DESC)
            **filters: Field-value pairs to filter by

        Returns:
            List of matching entities
        """
        query = self._build_query(filters)
        if order_by:
            order_field = getattr(self.model_class, order_by, None)
            if order_field is not None:
                query = query.order_by(
                    desc(order_field) if order == SortOrder.DESC else asc(order_field)
                )
        return query.all()

    def find_one_by(self, **filters) -> Optional[T]:
        """
        Find single entity by specific field values.

        Returns:
            First matching entity or None
        """
        return self._build_query(filters).first()

    def count(self, **filters) -> int:
        """Count entities matching filters."""
        return self._build_query(filters).count()

    # UPDATE Operations

    def update(self, entity: T, **updates) -> T:
        """
        Update an entity with new values.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            for field, value in updates.items():
                if hasattr(entity, field):
                    setattr(entity, field, value)
            self.session.flush()
            logger.debug(f"Updated {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model_class.__name__}: {e}")
            raise

    def update_many(self, filters: Dict[str, Any], updates: Dict[str, Any]) -> int:
        """
        Update multiple entities matching filters.

        Returns:
            Number of updated entities
        """
        try:
            count = self._build_query(filters).update(updates, synchronize_session=False)
            self.session.flush()
            logger.debug(f"Updated {count} {self.model_class.__name__} entities")
            return count
        except SQLAlchemyError as e:
            logger.error(f"Error updating multiple {self.model_class.__name__}: {e}")
            raise

    # Transaction Management

    def commit(self) -> None:
        """Commit the current transaction."""
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self.session.rollback()

    def flush(self) -> None:
        """Flush pending changes without committing."""
        self.session.flush()

    # Helper Methods

    def _dialect_insert(self):
        """Return the dialect-specific insert() that supports ON CONFLICT."""
        dialect = self.session.get_bind().dialect.name
        if dialect == 'postgresql':
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == 'sqlite':
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise NotImplementedError(f"ON CONFLICT inserts are not supported on {dialect}")
        return insert(self.model_class)

    def _build_query(self, filters: Optional[Dict[str, Any]] = None) -> Query:
        """
        Build a query with filters.

        Args:
            filters: Dictionary of filters to apply

        Returns:
            SQLAlchemy Query object
        """
        query = self.session.query(self.model_class)

        if filters:
            for field, value in filters.items():
                if hasattr(self.model_class, field):
                    if isinstance(value, list):
                        # Handle IN clause
                        query = query.filter(getattr(self.model_class, field).in_(value))
                    elif value is None:
                        # Handle NULL check
                        query = query.filter(getattr(self.model_class, field).is_(None))
                    else:
                        # Handle equality
                        query = query.filter(getattr(self.model_class, field) == value)

        return query
