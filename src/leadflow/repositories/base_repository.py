"""
Base repository class for data access operations
"""
from sqlalchemy.orm import Session
from typing import Generic, TypeVar, Type, Optional, List
from leadflow.database.models.base import BaseModel

ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class for database operations.
    Repositories handle direct database access and queries; they flush but
    leave committing to the service that owns the unit of work.
    """

    model: Type[ModelType]

    def __init__(self, db: Session, model: Optional[Type[ModelType]] = None):
        self.db = db
        if model is not None:
            self.model = model

    def find_by_id(self, id: str) -> Optional[ModelType]:
        """Find a record by ID"""
        return self.db.get(self.model, id)

    def find_all(self, skip: int = 0, limit: int = 100) -> List[ModelType]:
        """Find all records with pagination"""
        return self.db.query(self.model).offset(skip).limit(limit).all()

    def find_by(self, **filters) -> List[ModelType]:
        """Find records by filters"""
        return self.db.query(self.model).filter_by(**filters).all()

    def find_one_by(self, **filters) -> Optional[ModelType]:
        """Find a single record by filters"""
        return self.db.query(self.model).filter_by(**filters).first()

    def create(self, **kwargs) -> ModelType:
        """Create a new record"""
        db_obj = self.model(**kwargs)
        self.db.add(db_obj)
        self.db.flush()
        return db_obj

    def update(self, db_obj: ModelType, **kwargs) -> ModelType:
        """Update an existing record"""
        for key, value in kwargs.items():
            setattr(db_obj, key, value)
        self.db.flush()
        return db_obj

    def delete(self, db_obj: ModelType) -> None:
        """Delete a record"""
        self.db.delete(db_obj)
        self.db.flush()
