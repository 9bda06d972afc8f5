from typing import Any

from sqlalchemy import Delete, Select, Update, delete, select, update
from sqlalchemy.orm import Session

from database import Base


class UserScope:
    """
    Session wrapper bound to one user id.

    Every statement built here already carries the ``user_id`` predicate for
    the model it targets, so services never assemble an unscoped query.
    """

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _owned(self, model: type[Base]):
        return model.user_id == self.user_id

    def select(self, model: type[Base], *columns: Any) -> Select:
        stmt = select(*columns) if columns else select(model)
        return stmt.where(self._owned(model))

    def update(self, model: type[Base]) -> Update:
        return update(model).where(self._owned(model))

    def delete(self, model: type[Base]) -> Delete:
        return delete(model).where(self._owned(model))
