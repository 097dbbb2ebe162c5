"""
Base repository class that provides a consistent interface for all data access operations.
"""

from typing import TypeVar, Generic, Type, Optional, Any, Union
from sqlalchemy.orm import Session
from pydantic import BaseModel
import logging

from ..models.base import BaseModel as DBBaseModel

# Type variables for generic repository
T = TypeVar('T', bound=DBBaseModel)
CreateSchemaType = TypeVar('CreateSchemaType', bound=BaseModel)
UpdateSchemaType = TypeVar('UpdateSchemaType', bound=BaseModel)

logger = logging.getLogger(__name__)

class BaseRepository(Generic[T, CreateSchemaType, UpdateSchemaType]):
    """
    Base repository with common CRUD operations.

    Writes flush but never commit: the caller owns the transaction
    (get_db / get_db_context commit on exit).
    """

    def __init__(self, model: Type[T]):
        self.model = model

    def get(self, db: Session, id: int) -> Optional[T]:
        """Get a single record by ID."""
        try:
            return db.query(self.model).filter(self.model.id == id).first()
        except Exception as e:
            logger.error(f"Error getting {self.model.__name__} with id {id}: {e}")
            raise

    def create(self, db: Session, obj_in: Union[CreateSchemaType, dict]) -> T:
        """Create a new record in the database."""
        try:
            obj_data = self._filter_model_fields(self._to_dict(obj_in))
            db_obj = self.model(**obj_data)
            db.add(db_obj)
            db.flush()
            db.refresh(db_obj)
            logger.info(f"Created {self.model.__name__} with id {db_obj.id}")
            return db_obj
        except Exception as e:
            logger.error(f"Error creating {self.model.__name__}: {e}")
            db.rollback()
            raise

    def update(self, db: Session, db_obj: T, obj_in: Union[UpdateSchemaType, dict]) -> T:
        """Update an existing record; only fields present in obj_in are touched."""
        try:
            update_data = self._filter_model_fields(self._to_dict(obj_in))
            for field, value in update_data.items():
                setattr(db_obj, field, value)
            db.add(db_obj)
            db.flush()
            db.refresh(db_obj)
            logger.info(f"Updated {self.model.__name__} with id {db_obj.id}")
            return db_obj
        except Exception as e:
            logger.error(f"Error updating {self.model.__name__} with id {db_obj.id}: {e}")
            db.rollback()
            raise

    def delete(self, db: Session, id: int) -> bool:
        """Delete a record by ID. Returns False if it did not exist."""
        try:
            db_obj = self.get(db, id)
            if db_obj is None:
                return False
            db.delete(db_obj)
            db.flush()
            logger.info(f"Deleted {self.model.__name__} with id {id}")
            return True
        except Exception as e:
            logger.error(f"Error deleting {self.model.__name__} with id {id}: {e}")
            db.rollback()
            raise

    def _filter_model_fields(self, data: dict) -> dict:
        """Keep only keys that map to model attributes (column attribute names)."""
        attrs = {c.key for c in self.model.__mapper__.column_attrs}
        return {k: v for k, v in data.items() if k in attrs}

    def _to_dict(self, obj: Any) -> dict:
        """Convert Pydantic model or dict to dictionary."""
        if hasattr(obj, "model_dump"):
            return obj.model_dump(exclude_unset=True)
        if isinstance(obj, dict):
            return obj
        raise TypeError(f"Unsupported input type for {self.model.__name__}: {type(obj)}")
