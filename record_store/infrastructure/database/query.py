"""Queryable view of a record set, handed to inclusion plans."""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.orm import lazyload, selectinload
from sqlmodel import select

from record_store.shared.exceptions import QueryError

from .relations import RelationRegistry

RecordType = TypeVar("RecordType")


class RecordQuery(Generic[RecordType]):
    """
    Immutable builder over a ``SELECT`` of one record type.

    Relations not named through ``with_relation`` are never loaded and stay
    at their empty default (``None`` or an empty list) in the results.
    """

    def __init__(
        self,
        record_type: type[RecordType],
        registry: RelationRegistry,
        statement: Select | None = None,
    ):
        self.record_type = record_type
        self._registry = registry
        if statement is None:
            statement = select(record_type).options(lazyload("*"))
        self._statement = statement

    @property
    def statement(self) -> Select:
        return self._statement

    def _derive(self, statement: Select) -> "RecordQuery[RecordType]":
        return RecordQuery(self.record_type, self._registry, statement)

    def with_relation(self, path: str) -> "RecordQuery[RecordType]":
        """
        Eagerly load the relation at ``path``.

        ``path`` is a relation name, or a dotted chain of them to load nested
        relations (``"course.trainees"``).

        Raises:
            QueryError: If any segment of the path is not a known relation
        """
        owner = self.record_type
        loader = None
        options = []
        for segment in path.split("."):
            relation = self._registry.describe(owner).relation(segment)
            if relation is None:
                raise QueryError(
                    f"{owner.__name__} has no relation named '{segment}'",
                    self.record_type.__name__,
                    {"path": path},
                )
            loader = (
                selectinload(relation.attribute)
                if loader is None
                else loader.selectinload(relation.attribute)
            )
            owner = relation.target
            # Relations of the loaded value stay empty unless named further down
            options.append(loader.lazyload("*"))

        return self._derive(self._statement.options(loader, *options))

    def where(self, *criteria: Any) -> "RecordQuery[RecordType]":
        return self._derive(self._statement.where(*criteria))

    def order_by(self, *clauses: Any) -> "RecordQuery[RecordType]":
        return self._derive(self._statement.order_by(*clauses))

    def limit(self, count: int) -> "RecordQuery[RecordType]":
        return self._derive(self._statement.limit(count))


InclusionPlan = Callable[[RecordQuery[RecordType]], RecordQuery[RecordType]]
