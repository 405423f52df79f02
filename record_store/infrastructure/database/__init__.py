from .query import InclusionPlan, RecordQuery
from .relations import (
    Disposition,
    RecordDescriptor,
    RelationDescriptor,
    RelationRegistry,
    RelationshipOverride,
)
from .store import GenericRecordStore
from .unit_of_work import SessionScope

__all__ = [
    "Disposition",
    "GenericRecordStore",
    "InclusionPlan",
    "RecordDescriptor",
    "RecordQuery",
    "RelationDescriptor",
    "RelationRegistry",
    "RelationshipOverride",
    "SessionScope",
]
