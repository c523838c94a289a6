import logging
from typing import Any, Optional, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings
from database import Base
from errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Base)


def get_current_user_id() -> str:
    return get_settings().default_user_id


class RecordStore:
    """Per-user CRUD over the SQLAlchemy session.

    Every write is committed on its own; there is no unit of work spanning
    several records. Callers that touch more than one record sequence the
    writes themselves.
    """

    def __init__(self, session: Session, user_id: Optional[str] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _owned(self, model: type[M], record: Optional[M]) -> Optional[M]:
        if record is None:
            return None
        if hasattr(model, "user_id") and record.user_id != self.user_id:
            return None
        return record

    def _commit(self, action: str, model: type[Base]) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(f"store_{action}_failed: table={model.__tablename__}")
            raise PersistenceError(
                f"Failed to {action} {model.__tablename__} record"
            ) from exc

    def create(self, model: type[M], **values: Any) -> M:
        if hasattr(model, "user_id"):
            values.setdefault("user_id", self.user_id)
        record = model(**values)
        self.session.add(record)
        self._commit("create", model)
        self.session.refresh(record)
        return record

    def find(self, model: type[M], record_id: str) -> Optional[M]:
        try:
            record = self.session.get(model, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {model.__tablename__}") from exc
        return self._owned(model, record)

    def get(self, model: type[M], record_id: str) -> M:
        record = self.find(model, record_id)
        if record is None:
            raise NotFoundError(f"{_label(model)} not found")
        return record

    def list(
        self,
        model: type[M],
        *criteria: Any,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> list[M]:
        stmt = select(model)
        if hasattr(model, "user_id"):
            stmt = stmt.where(model.user_id == self.user_id)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to list {model.__tablename__}") from exc

    def update(self, model: type[M], record_id: str, patch: dict[str, Any]) -> M:
        record = self.get(model, record_id)
        for field, value in patch.items():
            setattr(record, field, value)
        self._commit("update", model)
        self.session.refresh(record)
        return record

    def save(self, record: M) -> M:
        self.session.add(record)
        self._commit("update", type(record))
        self.session.refresh(record)
        return record

    def delete(self, model: type[M], record_id: str) -> bool:
        record = self.find(model, record_id)
        if record is None:
            return False
        self.session.delete(record)
        self._commit("delete", model)
        return True


def _label(model: type[Base]) -> str:
    return model.__tablename__.replace("_", " ").rstrip("s").capitalize()
