"""
Generic record store.

``GenericRecordStore`` reads, inserts and updates records of any mapped
type. It knows nothing about concrete record types: relations are looked
up in a ``RelationRegistry`` and sessions come from the injected
``SessionFactory``. Every operation runs in its own ``SessionScope``, so a
session never outlives the call that opened it.
"""

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import make_transient
from sqlalchemy.orm.exc import StaleDataError
from sqlmodel import Session

from record_store.core.db import DatabaseSessionFactory, SessionFactory
from record_store.core.observability import (
    get_logger,
    record_skipped_override,
    track_operation,
)
from record_store.shared.exceptions import (
    NotFoundError,
    QueryError,
    ValidationError,
)

from .dispositions import (
    ATTACH_PHASE,
    POST_ADD_PHASE,
    REQUIRES_IDENTITY,
    attach_existing,
    has_identity,
    identity_of,
    mark_all_modified,
    populate_unloaded_graph,
    populate_unloaded_relations,
)
from .errors import translate_read_error, translate_stale_update, translate_write_error
from .query import InclusionPlan, RecordQuery
from .relations import RecordDescriptor, RelationRegistry, RelationshipOverride
from .unit_of_work import SessionScope

RecordType = TypeVar("RecordType")

Predicate = Callable[[RecordType], bool] | ColumnElement[bool]
OverridesFn = Callable[[RecordType], Iterable[RelationshipOverride | tuple]]

logger = get_logger(__name__)


class GenericRecordStore:
    """
    Read, insert and update records through short-lived sessions.

    Example:
        store = GenericRecordStore(DatabaseSessionFactory(), RelationRegistry([Trainee]))
        trainee = store.add(
            Trainee(name="A", course=existing_course),
            lambda t: [("course", t.course, Disposition.UNCHANGED)],
        )
        found = store.get(
            Trainee,
            lambda t: t.name == "A",
            lambda q: q.with_relation("course"),
        )
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        registry: RelationRegistry | None = None,
    ):
        """
        Initialize the store.

        Args:
            session_factory: Opens sessions; defaults to the configured database
            registry: Relations known for each record type; unregistered types
                are described from their ORM mapping on each call
        """
        self._session_factory = session_factory or DatabaseSessionFactory()
        self._registry = registry or RelationRegistry()

    @property
    def registry(self) -> RelationRegistry:
        return self._registry

    def session_scope(self, connection: str | None = None) -> SessionScope:
        return SessionScope(self._session_factory, connection)

    def get(
        self,
        record_type: type[RecordType],
        predicate: Predicate | None = None,
        include: InclusionPlan | None = None,
        connection: str | None = None,
    ) -> list[RecordType]:
        """
        Retrieve records of ``record_type``.

        Args:
            record_type: Mapped record class to read
            predicate: Keeps only matching records. A SQL expression is
                evaluated by the store, a plain callable on the loaded records.
                All records are returned when None.
            include: Declares the relations to load eagerly; relations it
                does not name are left empty
            connection: Connection string; None selects the default store

        Returns:
            Fully loaded list of records, detached from any session

        Raises:
            QueryError: If the predicate or inclusion plan does not fit the schema
            StoreConnectionError: If no session could be opened
        """
        name = record_type.__name__
        with track_operation("get", name):
            with self.session_scope(connection) as scope:
                statement = self._build_statement(record_type, predicate, include)
                try:
                    records = list(scope.session.scalars(statement).unique())
                    populate_unloaded_graph(records)
                except SQLAlchemyError as e:
                    raise translate_read_error(e, record_type) from e

            if predicate is None or isinstance(predicate, ColumnElement):
                return records

            try:
                return [record for record in records if predicate(record)]
            except Exception as e:
                raise QueryError(
                    f"Predicate cannot be evaluated against {name}: {str(e)}", name
                ) from e

    def add(
        self,
        record: RecordType,
        overrides: OverridesFn | None = None,
        connection: str | None = None,
    ) -> RecordType:
        """
        Insert ``record`` and commit.

        By default every related value that is not yet persisted is inserted
        along with the record. ``overrides`` changes that per relation, e.g.
        to attach an existing row instead of inserting a duplicate. Overrides
        naming a relation the record type does not have, or carrying no
        value, are skipped.

        Args:
            record: Record to insert; updated in place with store-assigned values
            overrides: Called with ``record``; returns relationship overrides
                as ``RelationshipOverride`` or ``(relation, value, disposition)``
            connection: Connection string; None selects the default store

        Returns:
            The same ``record`` instance

        Raises:
            ValidationError: If the store rejects the insert or an override is malformed
            StoreConnectionError: If no session could be opened
        """
        descriptor = self._describe(type(record))
        with track_operation("add", descriptor.name):
            with self.session_scope(connection) as scope:
                resolved = self._resolve_overrides(descriptor, record, overrides)
                try:
                    self._stage_insert(scope.session, record, resolved)
                    scope.commit()
                    populate_unloaded_relations(record)
                except SQLAlchemyError as e:
                    raise translate_write_error(e, record, "add") from e

        logger.info(
            "Record added",
            record_type=descriptor.name,
            key=str(identity_of(record)),
            overrides=len(resolved),
        )
        return record

    def update(self, record: RecordType, connection: str | None = None) -> None:
        """
        Write every column of ``record`` to its existing row.

        Args:
            record: Record carrying the key of an existing row
            connection: Connection string; None selects the default store

        Raises:
            NotFoundError: If no row has the record's key
            ConcurrencyError: If a versioned row was changed since it was read
            ValidationError: If the store rejects the new values
            StoreConnectionError: If no session could be opened
        """
        record_type = type(record)
        name = self._describe(record_type).name
        with track_operation("update", name):
            with self.session_scope(connection) as scope:
                key = identity_of(record)
                if key is None:
                    raise NotFoundError(name, key)
                try:
                    attach_existing(scope.session, record)
                    mark_all_modified(record)
                    scope.commit()
                except StaleDataError as e:
                    raise translate_stale_update(e, scope.session, record) from e
                except SQLAlchemyError as e:
                    raise translate_write_error(e, record, "update") from e

        logger.info("Record updated", record_type=name, key=str(key))

    def _describe(self, record_type: type) -> RecordDescriptor:
        try:
            return self._registry.describe(record_type)
        except ValueError as e:
            raise ValidationError(str(e), record_type.__name__) from e

    def _build_statement(
        self,
        record_type: type,
        predicate: Predicate | None,
        include: InclusionPlan | None,
    ) -> Any:
        name = record_type.__name__
        try:
            query = RecordQuery(record_type, self._registry)
            if include is not None:
                query = include(query)
                if not isinstance(query, RecordQuery):
                    raise QueryError(
                        f"Inclusion plan for {name} must return a RecordQuery, "
                        f"got {type(query).__name__}",
                        name,
                    )
            if isinstance(predicate, ColumnElement):
                query = query.where(predicate)
        except SQLAlchemyError as e:
            raise translate_read_error(e, record_type) from e
        except ValueError as e:
            raise QueryError(str(e), name) from e
        return query.statement

    def _resolve_overrides(
        self,
        descriptor: RecordDescriptor,
        record: Any,
        overrides: OverridesFn | None,
    ) -> list[RelationshipOverride]:
        if overrides is None:
            return []

        resolved = []
        for raw in overrides(record) or ():
            try:
                override = RelationshipOverride.coerce(raw)
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"Malformed relationship override {raw!r}: {str(e)}",
                    descriptor.name,
                ) from e

            relation = descriptor.relation(override.relation)
            if relation is None:
                # Unknown relations are skipped, not rejected
                logger.debug(
                    "Skipping override for unknown relation",
                    record_type=descriptor.name,
                    relation=override.relation,
                )
                record_skipped_override(descriptor.name, "unknown_relation")
                continue
            if override.value is None:
                logger.debug(
                    "Skipping override without a related value",
                    record_type=descriptor.name,
                    relation=override.relation,
                )
                record_skipped_override(descriptor.name, "empty_value")
                continue

            for value in override.values():
                if not isinstance(value, relation.target):
                    raise ValidationError(
                        f"Override for {descriptor.name}.{relation.name} expects "
                        f"{relation.target.__name__}, got {type(value).__name__}",
                        descriptor.name,
                    )
                if override.disposition in REQUIRES_IDENTITY and not has_identity(value):
                    raise ValidationError(
                        f"Cannot mark {relation.target.__name__} as "
                        f"{override.disposition.value} without its key",
                        descriptor.name,
                        {"relation": relation.name},
                    )
            resolved.append(override)
        return resolved

    def _stage_insert(
        self,
        session: Session,
        record: Any,
        overrides: list[RelationshipOverride],
    ) -> None:
        if inspect(record).detached:
            # Inserted under its current key, never written as an update
            make_transient(record)

        for override in overrides:
            handler = ATTACH_PHASE.get(override.disposition)
            if handler is not None:
                for value in override.values():
                    handler(session, value)

        session.add(record)

        for override in overrides:
            handler = POST_ADD_PHASE.get(override.disposition)
            if handler is not None:
                for value in override.values():
                    handler(session, value)

