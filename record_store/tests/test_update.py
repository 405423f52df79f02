"""
Update Tests

Tests for ``GenericRecordStore.update``: full-record writes, missing rows,
optimistic concurrency on versioned records and constraint violations.
"""

import pytest

from record_store.models import Course, Enrollment, Trainee
from record_store.shared.exceptions import (
    ConcurrencyError,
    NotFoundError,
    ValidationError,
)
from record_store.tests.utils import count_rows, load


class TestUpdate:
    """Successful updates."""

    def test_record_from_get_is_written_back(self, store, engine, seeded):
        [alice] = store.get(Trainee, lambda t: t.name == "Alice")
        alice.name = "Alicia"

        store.update(alice)

        assert load(engine, Trainee, alice.id).name == "Alicia"

    def test_record_built_by_caller(self, store, engine, seeded, existing_course):
        store.update(Trainee(id=seeded["carol"], name="Caroline", course_id=existing_course.id))

        carol = load(engine, Trainee, seeded["carol"])
        assert carol.name == "Caroline"
        assert carol.course_id == existing_course.id

    def test_every_column_is_written(self, store, engine, seeded):
        # A record built from scratch overwrites fields it never touched
        store.update(Trainee(id=seeded["alice"], name="Alice"))

        assert load(engine, Trainee, seeded["alice"]).course_id is None

    def test_update_twice_is_harmless(self, store, engine, seeded):
        [bob] = store.get(Trainee, lambda t: t.name == "Bob")
        bob.name = "Robert"

        store.update(bob)
        store.update(bob)

        assert load(engine, Trainee, bob.id).name == "Robert"
        assert count_rows(engine, Trainee) == 3

    def test_other_rows_are_untouched(self, store, engine, seeded):
        store.update(Trainee(id=seeded["alice"], name="Changed"))

        assert load(engine, Trainee, seeded["bob"]).name == "Bob"

    def test_record_is_usable_after_update(self, store, seeded):
        [alice] = store.get(Trainee, lambda t: t.name == "Alice")

        store.update(alice)

        assert alice.name == "Alice"
        assert alice.course is None

    def test_added_record_can_be_updated(self, store, engine):
        course = store.add(Course(code="UPD-1", title="Before"))
        course.title = "After"

        store.update(course)

        assert load(engine, Course, course.id).title == "After"


class TestUpdateFailures:
    """Failed updates leave the store unchanged."""

    def test_missing_row_is_not_found(self, store, engine, seeded):
        with pytest.raises(NotFoundError) as exc_info:
            store.update(Trainee(id=999, name="Ghost"))

        assert exc_info.value.key == (999,)
        assert exc_info.value.record_type == "Trainee"
        assert count_rows(engine, Trainee) == 3

    def test_record_without_key_is_not_found(self, store, engine, seeded):
        with pytest.raises(NotFoundError):
            store.update(Trainee(name="No key"))

        assert count_rows(engine, Trainee) == 3

    def test_constraint_violation(self, store, engine, existing_course):
        other = store.add(Course(code="OTHER", title="Other course"))
        other.code = existing_course.code

        with pytest.raises(ValidationError):
            store.update(other)

        assert load(engine, Course, other.id).code == "OTHER"
        # The caller's record keeps the values it was given
        assert other.code == existing_course.code

    def test_foreign_key_violation(self, store, engine, seeded):
        with pytest.raises(ValidationError):
            store.update(Trainee(id=seeded["alice"], name="Alice", course_id=404))

        assert load(engine, Trainee, seeded["alice"]).course_id is not None


class TestOptimisticConcurrency:
    """Versioned records reject updates based on a stale copy."""

    def test_version_is_assigned_and_advanced(self, store, seeded):
        enrollment = store.add(Enrollment(trainee_id=seeded["alice"]))
        assert enrollment.version == 1

        enrollment.status = "paused"
        store.update(enrollment)

        assert enrollment.version == 2

    def test_stale_copy_is_rejected(self, store, engine, seeded):
        enrollment = store.add(Enrollment(trainee_id=seeded["alice"]))
        [first] = store.get(Enrollment, lambda e: e.id == enrollment.id)
        [second] = store.get(Enrollment, lambda e: e.id == enrollment.id)

        first.status = "completed"
        store.update(first)

        second.status = "cancelled"
        with pytest.raises(ConcurrencyError) as exc_info:
            store.update(second)

        assert exc_info.value.key == (enrollment.id,)
        assert load(engine, Enrollment, enrollment.id).status == "completed"

    def test_missing_versioned_row_is_not_found(self, store, seeded):
        with pytest.raises(NotFoundError):
            store.update(Enrollment(id=999, trainee_id=seeded["alice"], version=1))
