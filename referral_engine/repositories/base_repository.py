# referral_engine/repositories/base_repository.py
"""
Base Repository Pattern for the referral engine.

Provides the foundation for all repository classes with:
- Primary-key lookups and inserts
- Type safety with generics
- Conditional (compare-and-set) updates
- Savepoint-guarded inserts for unique-key races

Transactions are owned by the service layer; repositories only flush.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session (managed by service layer)
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    def get_by_id(self, id: str, *, refresh: bool = False) -> Optional[T]:
        """
        Retrieve an entity by its primary key.

        ``refresh`` reloads the row even when the identity map already holds it,
        which callers need after a conditional update issued through SQL.
        """
        try:
            options = {"populate_existing": True} if refresh else {}
            return self.db.get(self.model, id, **options)
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting {self.model.__name__} by id {id}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {str(e)}")

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        Integrity errors propagate so callers can map them to domain conflicts.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def create_if_absent(self, **kwargs: Any) -> Optional[T]:
        """
        Insert inside a SAVEPOINT.

        Returns None when a unique constraint rejects the row; the surrounding
        transaction stays usable in that case.
        """
        entity = self.model(**kwargs)
        try:
            with self.db.begin_nested():
                self.db.add(entity)
                self.db.flush()
        except IntegrityError as exc:
            self.logger.debug(
                "Unique constraint rejected %s insert: %s", self.model.__name__, exc.orig
            )
            return None
        return entity

    def conditional_update(self, *criteria: Any, **values: Any) -> int:
        """
        Issue ``UPDATE ... SET values WHERE criteria`` and return the row count.

        The row count decides the winner when several callers race for the
        same transition; a zero means someone else already changed the row.
        """
        stmt = (
            sa.update(self.model)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Conditional update on {self.model.__name__} failed: {str(e)}")
            raise RepositoryException(f"Failed to update {self.model.__name__}: {str(e)}")
        return int(result.rowcount or 0)
