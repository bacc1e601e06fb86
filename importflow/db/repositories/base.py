"""
Base repository shared by the table-backed repositories.

Rows are converted to and from Pydantic models at this boundary; nested
models are stored as JSONB.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Table
from sqlalchemy.orm import Session

ModelT = TypeVar("ModelT", bound=BaseModel)


def model_to_jsonb(model: BaseModel | None) -> dict | None:
    """Serialize a Pydantic model for JSONB storage."""
    if model is None:
        return None
    return model.model_dump(mode="json")


def jsonb_to_model(data: dict | None, model_class: type[ModelT]) -> ModelT | None:
    """Deserialize JSONB into a Pydantic model."""
    if data is None:
        return None
    return model_class.model_validate(data)


class BaseRepository(ABC, Generic[ModelT]):
    """
    Common lookups and inserts.

    Subclasses provide the table and the row/model conversions.
    """

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def table(self) -> Table:
        """SQLAlchemy table for this repository."""

    @abstractmethod
    def _row_to_model(self, row: Any) -> ModelT:
        """Convert a database row to a Pydantic model."""

    @abstractmethod
    def _model_to_dict(self, model: ModelT) -> dict:
        """Convert a Pydantic model to column values."""

    def create(self, model: ModelT) -> ModelT:
        """
        Insert a new row.

        Returns:
            The stored model as read back from the database
        """
        data = self._model_to_dict(model)
        stmt = self.table.insert().values(**data).returning(self.table)
        row = self.session.execute(stmt).fetchone()
        return self._row_to_model(row)
