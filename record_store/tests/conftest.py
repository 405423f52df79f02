"""
Record Store Test Configuration and Fixtures

Every test gets its own in-memory SQLite database with the training
tracker tables, a session factory bound to it and a store using that
factory.
"""

from collections.abc import Generator

import pytest
from sqlalchemy import Engine
from sqlmodel import Session, SQLModel

from record_store.core.db import DatabaseSessionFactory, create_store_engine
from record_store.infrastructure.database import GenericRecordStore, RelationRegistry
from record_store.models import Course, Enrollment, Trainee


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Provide a fresh in-memory database with all tables created."""
    engine = create_store_engine("sqlite://")
    SQLModel.metadata.create_all(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> DatabaseSessionFactory:
    return DatabaseSessionFactory(engine=engine)


@pytest.fixture
def registry() -> RelationRegistry:
    return RelationRegistry([Course, Trainee, Enrollment])


@pytest.fixture
def store(
    session_factory: DatabaseSessionFactory, registry: RelationRegistry
) -> GenericRecordStore:
    return GenericRecordStore(session_factory, registry)


@pytest.fixture
def existing_course(engine: Engine) -> Course:
    """Provide a course that is already stored, detached from any session."""
    with Session(engine, expire_on_commit=False) as session:
        course = Course(code="PY-101", title="Python Basics", duration_hours=16)
        session.add(course)
        session.commit()
    return course


@pytest.fixture
def seeded(engine: Engine, existing_course: Course) -> dict[str, int]:
    """Store two more trainees on the existing course and one without a course."""
    with Session(engine, expire_on_commit=False) as session:
        alice = Trainee(name="Alice", course_id=existing_course.id)
        bob = Trainee(name="Bob", course_id=existing_course.id)
        carol = Trainee(name="Carol")
        session.add_all([alice, bob, carol])
        session.commit()
        return {"alice": alice.id, "bob": bob.id, "carol": carol.id}

