"""
Change-tracker operations on single values.

These helpers put a value into a specific state inside a session:
attached as an existing row, attached with every column dirty, scheduled
for insert, scheduled for delete, or kept out of the session entirely.
Dispositions are applied in two phases around ``session.add(record)``;
the second phase runs after the save-update cascade so that it wins over
the cascade's default of inserting every new related value.
"""

from collections.abc import Callable, Iterable
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import make_transient, make_transient_to_detached
from sqlalchemy.orm.attributes import flag_modified, set_committed_value
from sqlmodel import Session

from .relations import Disposition

DispositionHandler = Callable[[Session, Any], None]


def identity_of(value: Any) -> tuple | None:
    """Return the full primary key of ``value``, or None if any part is missing."""
    mapper = inspect(type(value))
    key = tuple(mapper.primary_key_from_instance(value))
    if any(part is None for part in key):
        return None
    return key


def has_identity(value: Any) -> bool:
    return identity_of(value) is not None


def attach_existing(session: Session, value: Any) -> None:
    """
    Attach ``value`` to ``session`` as an already persisted, unchanged row.

    Any pending attribute changes on the value are reset, so commit issues
    neither an INSERT nor an UPDATE for it. The value must carry its full
    primary key; callers check ``has_identity`` first.
    """
    state = inspect(value)
    if state.persistent or state.deleted:
        # Already attached to this session earlier in the same operation
        return
    if state.pending:
        session.expunge(value)
    if state.detached:
        make_transient(value)

    make_transient_to_detached(value)
    populate_unloaded_relations(value)
    session.add(value)


def mark_all_modified(value: Any) -> list[str]:
    """
    Flag every loaded column of ``value`` except keys and version counters as dirty.

    Returns:
        Names of the attributes that were flagged
    """
    mapper = inspect(type(value))
    state = inspect(value)
    version_column = mapper.version_id_col

    flagged = []
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        if column.primary_key or column is version_column:
            continue
        if prop.key not in state.dict:
            continue
        flag_modified(value, prop.key)
        flagged.append(prop.key)
    return flagged


def populate_unloaded_relations(value: Any) -> None:
    """Give relations that were never loaded their empty default."""
    # Otherwise they would load lazily, which fails once the session is closed
    mapper = inspect(type(value))
    state = inspect(value)
    for prop in mapper.relationships:
        if prop.key in state.unloaded:
            set_committed_value(value, prop.key, [] if prop.uselist else None)


def populate_unloaded_graph(values: Iterable[Any]) -> None:
    """Populate unloaded relations of ``values`` and of everything loaded with them."""
    seen: set[int] = set()
    pending = list(values)
    while pending:
        value = pending.pop()
        if id(value) in seen:
            continue
        seen.add(id(value))
        populate_unloaded_relations(value)

        state = inspect(value)
        for prop in state.mapper.relationships:
            related = state.dict.get(prop.key)
            if prop.uselist:
                pending.extend(related or ())
            elif related is not None:
                pending.append(related)


def _attach_modified(session: Session, value: Any) -> None:
    attach_existing(session, value)
    mark_all_modified(value)


def _schedule_insert(session: Session, value: Any) -> None:
    if inspect(value).detached:
        # A detached value already has a row; inserting means a new one
        make_transient(value)
    session.add(value)


def _delete(session: Session, value: Any) -> None:
    session.delete(value)


def _keep_out_of_session(session: Session, value: Any) -> None:
    if value in session:
        session.expunge(value)


# Applied before the record itself is registered for insert
ATTACH_PHASE: dict[Disposition, DispositionHandler] = {
    Disposition.UNCHANGED: attach_existing,
    Disposition.MODIFIED: _attach_modified,
    Disposition.DELETED: attach_existing,
    Disposition.ADDED: _schedule_insert,
}

# Applied after the record has been registered, overriding the cascade
POST_ADD_PHASE: dict[Disposition, DispositionHandler] = {
    Disposition.DELETED: _delete,
    Disposition.DETACHED: _keep_out_of_session,
}

REQUIRES_IDENTITY = frozenset(
    {Disposition.UNCHANGED, Disposition.MODIFIED, Disposition.DELETED}
)
