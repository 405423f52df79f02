"""
Relation registry and relationship overrides.

Each record type the store works with is described once by a
``RecordDescriptor`` listing its navigable relations. Overrides and
inclusion plans name relations by attribute name and are resolved against
that description by plain dictionary lookup.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import InstrumentedAttribute, Mapper


class Disposition(str, Enum):
    """Persistence action applied to a related value on commit."""

    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    DETACHED = "detached"

    @classmethod
    def _missing_(cls, value: object) -> "Disposition | None":
        # Accept member names in any case, e.g. "UNCHANGED" or "Unchanged"
        if isinstance(value, str):
            return cls.__members__.get(value.upper())
        return None


@dataclass(frozen=True)
class RelationshipOverride:
    """
    Overrides how one related value is persisted when a record is added.

    Attributes:
        relation: Name of the relation on the record type
        value: Related value, or a collection of them; None means nothing to do
        disposition: What to do with the value on commit
    """

    relation: str
    value: Any
    disposition: Disposition

    def __post_init__(self) -> None:
        if not isinstance(self.disposition, Disposition):
            object.__setattr__(self, "disposition", Disposition(self.disposition))

    @classmethod
    def for_relation(
        cls, record: Any, relation: str, disposition: Disposition | str
    ) -> "RelationshipOverride":
        """Build an override whose value is the record's current related value."""
        return cls(relation, getattr(record, relation, None), disposition)

    @classmethod
    def coerce(cls, override: "RelationshipOverride | tuple") -> "RelationshipOverride":
        if isinstance(override, cls):
            return override
        relation, value, disposition = override
        return cls(relation, value, disposition)

    def values(self) -> Iterator[Any]:
        """Iterate the related values this override applies to."""
        if self.value is None:
            return
        # SQLModel instances are iterable over their fields; check mapping first
        if inspect(self.value, raiseerr=False) is not None:
            yield self.value
        elif isinstance(self.value, Mapping):
            yield from self.value.values()
        elif isinstance(self.value, Iterable) and not isinstance(self.value, str):
            yield from (item for item in self.value if item is not None)
        else:
            yield self.value


@dataclass(frozen=True)
class RelationDescriptor:
    name: str
    target: type
    uselist: bool
    attribute: InstrumentedAttribute


@dataclass(frozen=True)
class RecordDescriptor:
    """The relations of one record type, keyed by attribute name."""

    record_type: type
    relations: Mapping[str, RelationDescriptor] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.record_type.__name__

    def relation(self, name: str) -> RelationDescriptor | None:
        return self.relations.get(name)

    @classmethod
    def from_model(
        cls, record_type: type, names: Iterable[str] | None = None
    ) -> "RecordDescriptor":
        """
        Describe ``record_type`` from its declared ORM mapping.

        Args:
            record_type: Mapped model class
            names: Restrict the description to these relations; all when None

        Raises:
            ValueError: If the type is not mapped or a name is not a relation
        """
        mapper = _mapper_for(record_type)
        declared = {prop.key: prop for prop in mapper.relationships}

        selected = list(declared) if names is None else list(names)
        unknown = [name for name in selected if name not in declared]
        if unknown:
            raise ValueError(
                f"{record_type.__name__} has no relation(s) named {', '.join(unknown)}"
            )

        relations = {
            name: RelationDescriptor(
                name=name,
                target=declared[name].mapper.class_,
                uselist=bool(declared[name].uselist),
                attribute=getattr(record_type, name),
            )
            for name in selected
        }
        return cls(record_type, relations)


class RelationRegistry:
    """
    Registry of record descriptors.

    Populate it before handing it to a store. Lookups never write to the
    registry, so it is safe to share between concurrent operations.
    """

    def __init__(self, models: Iterable[type] = ()):
        self._descriptors: dict[type, RecordDescriptor] = {}
        for model in models:
            self.register(model)

    def register(self, record_type: type, *relations: str) -> RecordDescriptor:
        """
        Register ``record_type``, optionally limited to the named relations.

        Relations left out of an explicit list cannot be overridden or
        eagerly loaded through the store.
        """
        descriptor = RecordDescriptor.from_model(record_type, relations or None)
        self._descriptors[record_type] = descriptor
        return descriptor

    def describe(self, record_type: type) -> RecordDescriptor:
        """Return the descriptor for ``record_type``, deriving one if unregistered."""
        descriptor = self._descriptors.get(record_type)
        if descriptor is None:
            descriptor = RecordDescriptor.from_model(record_type)
        return descriptor

    def __contains__(self, record_type: type) -> bool:
        return record_type in self._descriptors


def _mapper_for(record_type: type) -> Mapper:
    try:
        return inspect(record_type)
    except NoInspectionAvailable as e:
        raise ValueError(f"{record_type!r} is not a mapped record type") from e
