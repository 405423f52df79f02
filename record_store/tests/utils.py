from sqlalchemy import Engine, func
from sqlmodel import Session, select


def count_rows(engine: Engine, model: type) -> int:
    """Count stored rows of ``model`` through a session of its own."""
    with Session(engine) as session:
        return session.exec(select(func.count()).select_from(model)).one()


def load(engine: Engine, model: type, key: int):
    """Load a fresh copy of a row, bypassing the store."""
    with Session(engine, expire_on_commit=False) as session:
        return session.get(model, key)
